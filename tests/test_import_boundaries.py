"""
Import Boundary Tests.

Validates that architectural import rules are followed:
- web/services/* may ONLY import from core/*
- core/* may NOT import from web/, camera/, flask, werkzeug
- camera/* may NOT import from web/
"""

import ast
from pathlib import Path


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def get_imports_from_file(filepath: Path) -> list[tuple[str, int]]:
    """
    Extract all import statements from a Python file.

    Returns:
        List of (module_name, line_number) tuples
    """
    imports = []
    with open(filepath, encoding="utf-8") as f:
        tree = ast.parse(f.read(), filename=str(filepath))

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.append((alias.name, node.lineno))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                imports.append((node.module, node.lineno))

    return imports


def check_forbidden_imports(
    imports: list[tuple[str, int]], forbidden_prefixes: list[str]
) -> list[tuple[str, int]]:
    """
    Check for forbidden imports.

    Returns:
        List of (module_name, line_number) for violations
    """
    violations = []
    for module, line in imports:
        for prefix in forbidden_prefixes:
            if module.startswith(prefix):
                violations.append((module, line))
                break
    return violations


def collect_violations(directory: Path, forbidden: list[str]) -> list[str]:
    all_violations = []
    for py_file in directory.glob("*.py"):
        if py_file.name == "__init__.py":
            continue
        imports = get_imports_from_file(py_file)
        for module, line in check_forbidden_imports(imports, forbidden):
            all_violations.append(f"{py_file.name}:{line} imports {module}")
    return all_violations


class TestLayerBoundaries:
    """Tests for import boundaries between layers."""

    def test_services_only_import_from_core(self):
        """web/services/* should only import from core/*."""
        violations = collect_violations(
            get_project_root() / "web" / "services", ["utils.", "camera."]
        )

        assert len(violations) == 0, (
            "Services should only import from core/*. Violations:\n"
            + "\n".join(violations)
        )

    def test_core_does_not_import_web_or_camera(self):
        """core/* should never import from web/, camera/, flask, werkzeug."""
        violations = collect_violations(
            get_project_root() / "core", ["web.", "camera.", "flask", "werkzeug"]
        )

        assert len(violations) == 0, (
            "Core should never import web or camera layers. Violations:\n"
            + "\n".join(violations)
        )

    def test_camera_does_not_import_web(self):
        violations = collect_violations(
            get_project_root() / "camera", ["web.", "flask"]
        )

        assert len(violations) == 0, (
            "Camera wrappers must not import the web layer. Violations:\n"
            + "\n".join(violations)
        )


class TestModuleStructure:
    """Tests for module structure integrity."""

    def test_core_modules_exist(self):
        """Verify all required core modules exist."""
        core_dir = get_project_root() / "core"

        required_modules = [
            "audit_log.py",
            "notification_dispatcher.py",
            "policy_resolver.py",
            "privacy_context.py",
            "privacy_types.py",
            "recording_block.py",
            "schedule_engine.py",
            "time_window.py",
        ]

        missing = [m for m in required_modules if not (core_dir / m).exists()]

        assert len(missing) == 0, f"Missing core modules: {missing}"
