# config.py
import json
import os

from dotenv import load_dotenv

# Load environment variables from .env file.
load_dotenv()

_TRUE_VALUES = ("true", "1", "yes", "on")

ALL_WEBHOOK_EVENTS = [
    "policy_changed",
    "profile_activated",
    "panic_mode",
    "schedule_triggered",
]

_config_cache = None


def _env_bool(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_number(name, default, cast=float):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(float(raw))
    except ValueError:
        # Fallback to default if parsing fails
        return default


def _parse_webhook_events(raw):
    if not raw:
        return list(ALL_WEBHOOK_EVENTS)
    events = [part.strip() for part in raw.split(",") if part.strip()]
    return [event for event in events if event in ALL_WEBHOOK_EVENTS]


def _parse_webhook_headers(raw):
    if not raw:
        return {}
    try:
        headers = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if not isinstance(headers, dict):
        return {}
    return {str(k): str(v) for k, v in headers.items()}


def load_config():
    """
    Loads configuration from environment variables and returns a dictionary.
    """
    output_dir = os.getenv("OUTPUT_DIR", "./output")

    config = {
        # General Settings
        "DEBUG_MODE": _env_bool("DEBUG_MODE", False),
        "OUTPUT_DIR": output_dir,
        "STORAGE_FILE": os.getenv(
            "STORAGE_FILE", os.path.join(output_dir, "privacy_state.yaml")
        ),

        # Schedule Settings
        "SCHEDULE_CHECK_INTERVAL": _env_number("SCHEDULE_CHECK_INTERVAL", 60.0),

        # Audit Settings
        "AUDIT_RETENTION_DAYS": _env_number("AUDIT_RETENTION_DAYS", 30, int),

        # Webhook Settings
        "WEBHOOK_URL": os.getenv("WEBHOOK_URL", "").strip(),
        "WEBHOOK_EVENTS": _parse_webhook_events(os.getenv("WEBHOOK_EVENTS", "")),
        "WEBHOOK_INCLUDE_CAMERA_DETAILS": _env_bool(
            "WEBHOOK_INCLUDE_CAMERA_DETAILS", True
        ),
        "WEBHOOK_HEADERS": _parse_webhook_headers(os.getenv("WEBHOOK_HEADERS", "")),
        "WEBHOOK_RETRY_COUNT": _env_number("WEBHOOK_RETRY_COUNT", 3, int),
        "WEBHOOK_RETRY_DELAY": _env_number("WEBHOOK_RETRY_DELAY", 1.0),
        "WEBHOOK_TIMEOUT": _env_number("WEBHOOK_TIMEOUT", 10.0),

        # Web Interface
        "WEB_HOST": os.getenv("WEB_HOST", "0.0.0.0"),
        "WEB_PORT": _env_number("WEB_PORT", 8050, int),
    }
    return config


def get_config():
    """Returns the cached configuration, loading it on first use."""
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def reload_config():
    """Drops the cached configuration and loads it again from the environment."""
    global _config_cache
    _config_cache = load_config()
    return _config_cache


if __name__ == "__main__":
    # For testing purposes, print the configuration
    config = load_config()
    from pprint import pprint

    pprint(config)
