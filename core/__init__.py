"""
Camera Privacy Manager Core Package.

This package contains the core privacy logic, separated from the web
layer: schedule evaluation, policy resolution, audit logging and webhook
notifications.

ARCHITECTURE RULES:
- core/ modules may only import from:
  - Python standard library
  - utils/ (storage and HTTP adapters)
  - config (for global configuration)

- core/ modules MUST NOT import from:
  - web/ (no Flask dependencies)
  - camera/ (camera wrappers depend on core, not the other way round)
  - flask, werkzeug, or any web-specific packages

- All new business logic should be placed here, not in web/
"""

__all__ = [
    "audit_log",
    "notification_dispatcher",
    "policy_resolver",
    "privacy_context",
    "privacy_types",
    "recording_block",
    "schedule_engine",
    "time_window",
]
