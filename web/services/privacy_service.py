"""
Privacy Service - Web Layer Service for Privacy Operations.

Thin wrapper over core.privacy_context for web-specific concerns:
JSON-friendly return values and boundary parsing of request payloads.
"""

from typing import Any

from core.privacy_context import CAMERA_SETTING_KEYS, PrivacyContext
from core.privacy_types import (
    ALL_BLOCKED,
    POLICY_FIELDS,
    EventKind,
    PolicySettings,
    Profile,
    WebhookConfig,
    parse_bool,
)

POLICY_KEYS = {key for attr, wire, _ in POLICY_FIELDS for key in (attr, wire)}


def _profile_payload(profile: Profile) -> dict[str, Any]:
    return profile.to_dict()


def _parse_policy(
    value: Any, base: PolicySettings
) -> tuple[PolicySettings | None, list[str]]:
    if not isinstance(value, dict):
        return None, ["'settings' must be an object"]
    errors = [f"Unknown setting: {key}" for key in value if key not in POLICY_KEYS]
    if errors:
        return None, errors
    return PolicySettings.from_dict(value, base), []


def _parse_camera_ids(value: Any) -> tuple[list[str] | None, list[str]]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None, ["'cameraIds' must be a list of camera IDs"]
    return value, []


def get_status(context: PrivacyContext) -> dict[str, Any]:
    return context.get_status()


def set_panic_mode(context: PrivacyContext, enabled: Any) -> dict[str, Any]:
    """Switches panic mode; accepts booleans or "true"/"false" strings."""
    changed = context.set_panic_mode(parse_bool(enabled))
    return {"panic_mode": context.is_panic_mode_active(), "changed": changed}


def list_profiles(context: PrivacyContext) -> list[dict[str, Any]]:
    return [_profile_payload(p) for p in context.get_profiles()]


def activate_profile(context: PrivacyContext, profile_id: str) -> dict[str, Any]:
    """
    Raises:
        KeyError: Unknown profile.
    """
    changed = context.activate_profile(profile_id)
    return {"profile": _profile_payload(context.get_profile(profile_id)), "changed": changed}


def deactivate_profile(context: PrivacyContext, profile_id: str) -> dict[str, Any]:
    changed = context.deactivate_profile(profile_id)
    return {"profile": _profile_payload(context.get_profile(profile_id)), "changed": changed}


def create_profile(
    context: PrivacyContext, payload: Any
) -> tuple[dict[str, Any] | None, list[str]]:
    """
    Creates an inactive profile from {"name", "cameraIds", "settings"}.

    Returns:
        Tuple of (profile dict or None, list of error messages)
    """
    if not isinstance(payload, dict):
        return None, ["Invalid payload format"]

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        return None, ["'name' is required"]

    errors = []
    member_ids, member_errors = _parse_camera_ids(payload.get("cameraIds", []))
    errors.extend(member_errors)
    settings, settings_errors = _parse_policy(payload.get("settings", {}), ALL_BLOCKED)
    errors.extend(settings_errors)
    if errors:
        return None, errors

    profile = context.create_profile(name.strip(), member_ids, settings)
    return _profile_payload(profile), []


def update_profile(
    context: PrivacyContext, profile_id: str, payload: Any
) -> tuple[dict[str, Any] | None, list[str]]:
    """
    Applies a partial update. Omitted fields keep their value.

    Raises:
        KeyError: Unknown profile.
    """
    current = context.get_profile(profile_id)
    if not isinstance(payload, dict):
        return None, ["Invalid payload format"]

    errors = []
    name = payload.get("name")
    if name is not None and (not isinstance(name, str) or not name.strip()):
        errors.append("'name' must be a non-empty string")

    member_ids = None
    if "cameraIds" in payload:
        member_ids, member_errors = _parse_camera_ids(payload["cameraIds"])
        errors.extend(member_errors)

    settings = None
    if "settings" in payload:
        settings, settings_errors = _parse_policy(payload["settings"], current.settings)
        errors.extend(settings_errors)

    if errors:
        return None, errors

    profile = context.update_profile(
        profile_id,
        name=name.strip() if name is not None else None,
        member_ids=member_ids,
        settings=settings,
    )
    return _profile_payload(profile), []


def delete_profile(context: PrivacyContext, profile_id: str) -> None:
    context.delete_profile(profile_id)


def get_camera(context: PrivacyContext, camera_id: str) -> dict[str, Any]:
    return context.camera_status(camera_id)


def update_camera_settings(
    context: PrivacyContext, camera_id: str, payload: dict[str, Any]
) -> tuple[bool, list[str]]:
    """
    Applies several camera settings.

    Returns:
        Tuple of (success, list of error messages)

    Raises:
        KeyError: Unknown camera.
    """
    context.get_camera_config(camera_id)
    if not isinstance(payload, dict):
        return False, ["Invalid payload format"]

    errors = [f"Unknown setting: {key}" for key in payload if key not in CAMERA_SETTING_KEYS]
    if errors:
        return False, errors

    for key, value in payload.items():
        if not context.update_camera_setting(camera_id, key, value):
            errors.append(f"Invalid value for {key}: {value!r}")

    return not errors, errors


def get_default_settings(context: PrivacyContext) -> dict[str, Any]:
    return context.get_default_settings().to_dict()


def set_default_settings(
    context: PrivacyContext, payload: Any
) -> tuple[dict[str, Any] | None, list[str]]:
    settings, errors = _parse_policy(payload, context.get_default_settings())
    if errors:
        return None, errors
    context.set_default_settings(settings)
    return settings.to_dict(), []


def get_audit_log(
    context: PrivacyContext, fmt: str = "json", count: int | None = None
) -> str | list[dict[str, Any]]:
    """Returns the audit log as text export or a list of entry dicts."""
    if fmt == "text":
        return context.audit_log.export_logs()
    if count is not None:
        entries = context.audit_log.get_recent_logs(count)
    else:
        entries = context.audit_log.get_logs()
    return [entry.to_dict() for entry in entries]


def clear_audit_log(context: PrivacyContext) -> None:
    context.audit_log.clear_logs()


def set_retention_days(
    context: PrivacyContext, days: Any
) -> tuple[dict[str, Any] | None, list[str]]:
    """Returns ({"retention_days", "removed"}, errors)."""
    if isinstance(days, bool):
        return None, ["'days' must be a whole number"]
    try:
        days = int(days)
    except (TypeError, ValueError, OverflowError):
        return None, ["'days' must be a whole number"]
    if days < 1:
        return None, ["'days' must be at least 1"]

    removed = context.set_retention_days(days)
    return {"retention_days": days, "removed": removed}, []


def force_schedule_check(context: PrivacyContext) -> dict[str, Any]:
    context.schedule_engine.force_check()
    return context.schedule_engine.get_status()


def run_webhook_test(context: PrivacyContext) -> dict[str, Any]:
    result = context.notifications.test()
    return {"success": result.success, "message": result.message}


def get_webhook_config(context: PrivacyContext) -> dict[str, Any] | None:
    """Current webhook config with header values masked."""
    config = context.get_webhook_config()
    if config is None:
        return None
    data = config.to_dict()
    data["headers"] = {name: "***" for name in config.headers}
    return data


def set_webhook_config(
    context: PrivacyContext, payload: Any
) -> tuple[dict[str, Any] | None, list[str]]:
    """
    Replaces the webhook config. An empty or null "url" disables webhooks.

    Returns:
        Tuple of (config dict or None, list of error messages)
    """
    if not isinstance(payload, dict):
        return None, ["Invalid payload format"]

    url = payload.get("url")
    if url is None or (isinstance(url, str) and not url.strip()):
        context.set_webhook_config(None)
        return None, []

    errors = []
    if not isinstance(url, str) or not url.strip().startswith(("http://", "https://")):
        errors.append("'url' must be an http(s) URL")

    events = set(EventKind)
    raw_events = payload.get("events")
    if raw_events is not None:
        if not isinstance(raw_events, list):
            errors.append("'events' must be a list")
        else:
            events = set()
            for raw in raw_events:
                try:
                    events.add(EventKind(raw))
                except ValueError:
                    errors.append(f"Unknown event: {raw!r}")

    headers = payload.get("headers", {})
    if not isinstance(headers, dict):
        errors.append("'headers' must be an object")

    if errors:
        return None, errors

    config = WebhookConfig(
        url=url.strip(),
        events=events,
        include_camera_details=parse_bool(payload.get("includeCameraDetails", True)),
        headers={str(k): str(v) for k, v in headers.items()},
    )
    context.set_webhook_config(config)
    return get_webhook_config(context), []
