"""
Privacy Context - Application State and Wiring.

One explicit object, built at startup, that owns the privacy state
(panic mode, profiles, per-camera configuration) and connects the core
modules:

    schedule edges / manual edits / profile changes / panic mode
        -> policy_resolver.resolve()
        -> audit log + webhook notifications + policy listeners

Children never hold a reference to this object: camera guards receive
settings through policy listeners, the schedule engine reports edges
through its callback.
"""

import json
import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from config import get_config
from core.audit_log import AuditLog
from core.notification_dispatcher import NotificationDispatcher
from core.policy_resolver import find_active_profile, resolve
from core.privacy_types import (
    ALL_ALLOWED,
    ALL_BLOCKED,
    POLICY_FIELDS,
    CameraPrivacyConfig,
    EventKind,
    PolicySettings,
    Profile,
    ScheduleType,
    Trigger,
    WebhookConfig,
    days_for_schedule_type,
    parse_bool,
)
from core.schedule_engine import SCHEDULE_START, ScheduleEngine
from core.time_window import describe_settings, is_valid_time
from utils.kv_storage import KeyValueStore, YamlFileStore

logger = logging.getLogger(__name__)

PLUGIN_SETTINGS_KEY = "pluginSettings"
CAMERA_CONFIG_PREFIX = "cameraConfig:"

BLOCK_SETTING_KEYS = tuple(wire for _, wire, _ in POLICY_FIELDS)
CAMERA_SETTING_KEYS = (
    ("privacyEnabled",)
    + BLOCK_SETTING_KEYS
    + (
        "scheduleEnabled",
        "scheduleType",
        "scheduleStartTime",
        "scheduleEndTime",
        "scheduleDays",
    )
)

PolicyListener = Callable[[str, PolicySettings], None]


@dataclass
class _CameraState:
    name: str
    config: CameraPrivacyConfig
    effective: PolicySettings


def _parse_days(value: Any) -> set[int] | None:
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        parts = list(value)
    else:
        return None

    days = set()
    for part in parts:
        try:
            day = int(part)
        except (TypeError, ValueError, OverflowError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return days


def _copy_profile(profile: Profile) -> Profile:
    return replace(profile, member_ids=set(profile.member_ids))


class PrivacyContext:
    """Owns privacy state and routes every policy transition."""

    def __init__(
        self,
        storage: KeyValueStore,
        schedule_engine: ScheduleEngine | None = None,
        audit_log: AuditLog | None = None,
        notifications: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            storage: Persistence for plugin settings, camera configs and
                the audit log.
            schedule_engine: Engine to register schedules with.
            audit_log: Audit log; defaults to one on ``storage``.
            notifications: Webhook dispatcher.
            clock: Local-time clock for a default schedule engine.
        """
        self._storage = storage
        self._lock = threading.RLock()
        self._cameras: dict[str, _CameraState] = {}
        self._listeners: list[PolicyListener] = []

        self._load_plugin_settings()

        self.schedule_engine = schedule_engine or ScheduleEngine(clock=clock)
        self.audit_log = audit_log or AuditLog(
            storage, retention_days=self._retention_days
        )
        self.notifications = notifications or NotificationDispatcher()
        if self._webhook is not None:
            self.notifications.set_config(self._webhook)

        self._unsubscribe_schedule = self.schedule_engine.on_change(
            self._on_schedule_change
        )

    @classmethod
    def from_config(cls, config: dict | None = None) -> "PrivacyContext":
        """Builds the context from application config (env / .env)."""
        config = config or get_config()
        context = cls(
            YamlFileStore(config["STORAGE_FILE"]),
            schedule_engine=ScheduleEngine(
                check_interval=config["SCHEDULE_CHECK_INTERVAL"]
            ),
            notifications=NotificationDispatcher(
                retry_count=config["WEBHOOK_RETRY_COUNT"],
                retry_delay=config["WEBHOOK_RETRY_DELAY"],
                timeout=config["WEBHOOK_TIMEOUT"],
            ),
        )

        if context.notifications.get_config() is None and config.get("WEBHOOK_URL"):
            context.notifications.set_config(
                WebhookConfig(
                    url=config["WEBHOOK_URL"],
                    events={EventKind(e) for e in config["WEBHOOK_EVENTS"]},
                    include_camera_details=config["WEBHOOK_INCLUDE_CAMERA_DETAILS"],
                    headers=config["WEBHOOK_HEADERS"],
                )
            )
        return context

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_json(self, key: str) -> Any:
        try:
            stored = self._storage.get(key)
        except Exception as e:
            logger.error(f"Failed to read {key}: {e}")
            return None
        if not stored:
            return None
        try:
            return json.loads(stored)
        except json.JSONDecodeError:
            logger.warning(f"Stored value for {key} is not valid JSON, using defaults")
            return None

    def _write_json(self, key: str, value: Any) -> None:
        try:
            self._storage.set(key, json.dumps(value))
        except Exception as e:
            logger.error(f"Failed to save {key}: {e}")

    def _load_plugin_settings(self) -> None:
        raw = self._read_json(PLUGIN_SETTINGS_KEY)
        if not isinstance(raw, dict):
            raw = {}

        self._panic_mode = parse_bool(raw.get("panicMode", False))
        self._default_settings = PolicySettings.from_dict(raw.get("defaultSettings"))
        self._webhook = WebhookConfig.from_dict(raw.get("webhook"))

        try:
            self._retention_days = max(
                1,
                int(
                    raw.get(
                        "auditLogRetentionDays",
                        get_config().get("AUDIT_RETENTION_DAYS", 30),
                    )
                ),
            )
        except (TypeError, ValueError, OverflowError):
            self._retention_days = 30

        stored_profiles = raw.get("profiles") or []
        if not isinstance(stored_profiles, list):
            logger.warning(f"Ignoring malformed stored profiles: {stored_profiles!r}")
            stored_profiles = []
        profiles = []
        for item in stored_profiles:
            profile = Profile.from_dict(item)
            if profile is None:
                logger.warning(f"Skipping malformed stored profile: {item!r}")
                continue
            profiles.append(profile)

        active = [p for p in profiles if p.active]
        if len(active) > 1:
            logger.warning(
                "Stored state has several active profiles "
                f"({', '.join(p.name for p in active)}); deactivating all of them"
            )
            for profile in active:
                profile.active = False

        self._profiles: dict[str, Profile] = {p.id: p for p in profiles}

    def _save_plugin_settings(self) -> None:
        self._write_json(
            PLUGIN_SETTINGS_KEY,
            {
                "panicMode": self._panic_mode,
                "defaultSettings": self._default_settings.to_dict(),
                "webhook": self._webhook.to_dict() if self._webhook else None,
                "auditLogRetentionDays": self._retention_days,
                "profiles": [p.to_dict() for p in self._profiles.values()],
            },
        )

    def _load_camera_config(self, camera_id: str) -> CameraPrivacyConfig:
        raw = self._read_json(f"{CAMERA_CONFIG_PREFIX}{camera_id}")
        if raw is None:
            return CameraPrivacyConfig(manual_settings=self._default_settings)
        return CameraPrivacyConfig.from_dict(raw)

    def _save_camera_config(self, camera_id: str, config: CameraPrivacyConfig) -> None:
        self._write_json(f"{CAMERA_CONFIG_PREFIX}{camera_id}", config.to_dict())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.audit_log.apply_retention()
        self.schedule_engine.start()

    def shutdown(self, flush_timeout: float | None = 5.0) -> None:
        self.schedule_engine.stop()
        self.notifications.flush(timeout=flush_timeout)

    def add_policy_listener(self, listener: PolicyListener) -> Callable[[], None]:
        """Registers ``listener(camera_id, settings)`` for effective changes."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _require_camera(self, camera_id: str) -> _CameraState:
        state = self._cameras.get(camera_id)
        if state is None:
            raise KeyError(f"Unknown camera: {camera_id}")
        return state

    def _resolve(self, camera_id: str) -> PolicySettings:
        config = self._cameras[camera_id].config
        schedule_effective = self.schedule_engine.get_effective_settings(
            camera_id, config.manual_settings
        )
        return resolve(
            self.is_panic_mode_active(),
            config.enabled,
            schedule_effective,
            self.get_active_profile_for_camera(camera_id),
            config.manual_settings,
        )

    def refresh_camera(
        self,
        camera_id: str,
        trigger: Trigger,
        profile_name: str | None = None,
    ) -> bool:
        """
        Re-resolves a camera's policy.

        When the effective settings changed, writes an audit entry,
        notifies the webhook and informs policy listeners.

        Returns:
            True if the effective settings changed.
        """
        with self._lock:
            state = self._require_camera(camera_id)
            previous = state.effective
            current = self._resolve(camera_id)
            if current == previous:
                return False
            state.effective = current
            name = state.name
            listeners = list(self._listeners)

        logger.info(f"Settings changed for {name}: {describe_settings(current)}")
        self.audit_log.log(
            camera_id, name, previous, current, trigger, profile_name=profile_name
        )
        self.notifications.notify_policy_change(name, camera_id, current, trigger)

        for listener in listeners:
            try:
                listener(camera_id, current)
            except Exception as e:
                logger.error(
                    f"Policy listener failed for camera {camera_id}: {e}", exc_info=True
                )
        return True

    def refresh_all(self, trigger: Trigger) -> int:
        with self._lock:
            camera_ids = list(self._cameras)
        return sum(1 for camera_id in camera_ids if self.refresh_camera(camera_id, trigger))

    def _on_schedule_change(
        self, camera_id: str, settings: PolicySettings, reason: str
    ) -> None:
        with self._lock:
            state = self._cameras.get(camera_id)
            if state is None:
                return
            name = state.name

        action = "start" if reason == SCHEDULE_START else "end"
        self.notifications.notify_schedule_triggered(name, camera_id, settings, action)
        self.refresh_camera(camera_id, Trigger.SCHEDULE)

    # ------------------------------------------------------------------
    # Cameras
    # ------------------------------------------------------------------

    def register_camera(self, camera_id: str, name: str) -> PolicySettings:
        """
        Loads a camera's stored config, registers its schedule and
        computes its initial effective settings.
        """
        with self._lock:
            existing = self._cameras.get(camera_id)
            if existing is not None:
                existing.name = name
                return existing.effective

            config = self._load_camera_config(camera_id)
            state = _CameraState(name=name, config=config, effective=ALL_ALLOWED)
            self._cameras[camera_id] = state
            self.schedule_engine.set_schedule(camera_id, config.schedule)
            state.effective = self._resolve(camera_id)

        logger.info(
            f"Initialized privacy for {name}: {describe_settings(state.effective)}"
        )
        return state.effective

    def release_camera(self, camera_id: str) -> None:
        with self._lock:
            state = self._cameras.pop(camera_id, None)
        self.schedule_engine.remove_schedule(camera_id)
        if state is not None:
            logger.info(f"Released privacy controls for {state.name}")

    def get_camera_config(self, camera_id: str) -> CameraPrivacyConfig:
        with self._lock:
            return CameraPrivacyConfig.from_dict(
                self._require_camera(camera_id).config.to_dict()
            )

    def get_effective_settings(self, camera_id: str) -> PolicySettings:
        with self._lock:
            return self._require_camera(camera_id).effective

    def update_camera_setting(self, camera_id: str, key: str, value: Any) -> bool:
        """
        Applies one camera setting from the UI/API boundary.

        Values are parsed to strict types here. Invalid values are ignored
        with a warning.

        Returns:
            True if the setting was applied.

        Raises:
            KeyError: Unknown camera or setting key.
        """
        with self._lock:
            state = self._require_camera(camera_id)
            config = state.config
            previous_manual = config.manual_settings
            schedule_changed = False

            if key == "privacyEnabled":
                config.enabled = parse_bool(value)
            elif key in BLOCK_SETTING_KEYS:
                config.manual_settings = config.manual_settings.with_field(key, value)
            elif key == "scheduleEnabled":
                config.schedule.enabled = parse_bool(value)
                schedule_changed = True
            elif key == "scheduleType":
                try:
                    config.schedule.type = ScheduleType(value)
                except ValueError:
                    logger.warning(f"Ignoring invalid schedule type {value!r}")
                    return False
                if config.schedule.type != ScheduleType.CUSTOM:
                    config.schedule.days = days_for_schedule_type(config.schedule.type)
                schedule_changed = True
            elif key in ("scheduleStartTime", "scheduleEndTime"):
                if not is_valid_time(value):
                    logger.warning(f"Ignoring invalid time {value!r} for {key}")
                    return False
                if key == "scheduleStartTime":
                    config.schedule.start_time = value
                else:
                    config.schedule.end_time = value
                schedule_changed = True
            elif key == "scheduleDays":
                days = _parse_days(value)
                if days is None:
                    logger.warning(f"Ignoring invalid schedule days {value!r}")
                    return False
                config.schedule.days = days
                schedule_changed = True
            else:
                raise KeyError(f"Unknown privacy setting: {key}")

            self._save_camera_config(camera_id, config)

            if schedule_changed:
                self.schedule_engine.set_schedule(camera_id, config.schedule)

            changed = self.refresh_camera(camera_id, Trigger.MANUAL)
            name = state.name
            new_manual = config.manual_settings

        # Manual edits hidden behind a schedule/profile still get recorded.
        if not changed and new_manual != previous_manual:
            self.audit_log.log_manual(camera_id, name, previous_manual, new_manual)
        return True

    def list_cameras(self) -> list[dict]:
        with self._lock:
            camera_ids = list(self._cameras)
        return [self.camera_status(camera_id) for camera_id in camera_ids]

    def camera_status(self, camera_id: str) -> dict:
        with self._lock:
            state = self._require_camera(camera_id)
            profile = self.get_active_profile_for_camera(camera_id)
            info = self.schedule_engine.get_info(camera_id)
            panic = self._panic_mode

            if panic:
                status = "PANIC MODE ACTIVE - All cameras are in full privacy mode"
            elif profile is not None:
                status = f'Profile "{profile.name}" is active'
            elif info.is_active:
                status = f"Schedule is active: {info.description}"
            else:
                status = describe_settings(state.effective)

            return {
                "camera_id": camera_id,
                "name": state.name,
                "enabled": state.config.enabled,
                "status": status,
                "effective_settings": state.effective.to_dict(),
                "manual_settings": state.config.manual_settings.to_dict(),
                "schedule": {
                    **state.config.schedule.to_dict(),
                    "is_active": info.is_active,
                    "description": info.description,
                    "next_change": (
                        info.next_change.isoformat() if info.next_change else None
                    ),
                },
                "active_profile": profile.name if profile else None,
                "panic_mode": panic,
            }

    # ------------------------------------------------------------------
    # Panic mode
    # ------------------------------------------------------------------

    def is_panic_mode_active(self) -> bool:
        return self._panic_mode

    def set_panic_mode(self, enabled: Any) -> bool:
        """
        Switches the global override. Returns True if the state changed.
        """
        enabled = parse_bool(enabled)
        with self._lock:
            if self._panic_mode == enabled:
                return False
            self._panic_mode = enabled
            self._save_plugin_settings()

        if enabled:
            logger.warning("PANIC MODE ACTIVATED - All cameras going to full privacy")
            self.audit_log.log_panic(True, ALL_ALLOWED, ALL_BLOCKED)
        else:
            logger.info("Panic mode deactivated - Cameras returning to normal")
            self.audit_log.log_panic(False, ALL_BLOCKED, ALL_ALLOWED)

        self.notifications.notify_panic_mode(enabled, Trigger.PANIC)
        self.refresh_all(Trigger.PANIC)
        return True

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def _require_profile(self, profile_id: str) -> Profile:
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise KeyError(f"Unknown profile: {profile_id}")
        return profile

    def get_profiles(self) -> list[Profile]:
        with self._lock:
            return [_copy_profile(p) for p in self._profiles.values()]

    def get_profile(self, profile_id: str) -> Profile:
        with self._lock:
            return _copy_profile(self._require_profile(profile_id))

    def get_active_profile_for_camera(self, camera_id: str) -> Profile | None:
        """
        Raises:
            ProfileOverlapError: If several active profiles contain the camera.
        """
        with self._lock:
            profile = find_active_profile(self._profiles.values(), camera_id)
            return _copy_profile(profile) if profile else None

    def _refresh_members(self, member_ids: Iterable[str], profile_name: str) -> None:
        for camera_id in member_ids:
            if camera_id in self._cameras:
                self.refresh_camera(camera_id, Trigger.PROFILE, profile_name=profile_name)

    def create_profile(
        self,
        name: str,
        member_ids: Iterable[str] = (),
        settings: PolicySettings = ALL_BLOCKED,
    ) -> Profile:
        profile = Profile(
            id=f"profile-{uuid.uuid4().hex[:12]}",
            name=name,
            member_ids={str(m) for m in member_ids},
            settings=settings,
            active=False,
        )
        with self._lock:
            self._profiles[profile.id] = profile
            self._save_plugin_settings()
        logger.info(f"Created profile {name} ({profile.id})")
        return _copy_profile(profile)

    def update_profile(
        self,
        profile_id: str,
        name: str | None = None,
        member_ids: Iterable[str] | None = None,
        settings: PolicySettings | None = None,
    ) -> Profile:
        with self._lock:
            profile = self._require_profile(profile_id)
            affected = set(profile.member_ids)
            if name is not None:
                profile.name = name
            if member_ids is not None:
                profile.member_ids = {str(m) for m in member_ids}
                affected |= profile.member_ids
            if settings is not None:
                profile.settings = settings
            self._save_plugin_settings()

            if profile.active:
                self._refresh_members(sorted(affected), profile.name)
            return _copy_profile(profile)

    def delete_profile(self, profile_id: str) -> None:
        with self._lock:
            profile = self._require_profile(profile_id)
            if profile.active:
                self.deactivate_profile(profile_id)
            del self._profiles[profile_id]
            self._save_plugin_settings()
        logger.info(f"Deleted profile {profile.name}")

    def activate_profile(self, profile_id: str, trigger: Trigger = Trigger.MANUAL) -> bool:
        """
        Activates a profile after deactivating every other one.

        Returns:
            False if the profile was already active.
        """
        with self._lock:
            profile = self._require_profile(profile_id)
            if profile.active:
                return False

            logger.info(f"Activating profile: {profile.name}")
            previous = [p for p in self._profiles.values() if p.active]
            for other in previous:
                other.active = False
            profile.active = True
            self._save_plugin_settings()

            for other in previous:
                self._refresh_members(
                    sorted(other.member_ids - profile.member_ids), other.name
                )
            self._refresh_members(sorted(profile.member_ids), profile.name)
            name, count = profile.name, len(profile.member_ids)

        self.notifications.notify_profile_activated(
            name, trigger, {"cameraCount": count}
        )
        return True

    def deactivate_profile(self, profile_id: str) -> bool:
        with self._lock:
            profile = self._require_profile(profile_id)
            if not profile.active:
                return False

            logger.info(f"Deactivating profile: {profile.name}")
            profile.active = False
            self._save_plugin_settings()
            self._refresh_members(sorted(profile.member_ids), profile.name)
        return True

    def deactivate_all_profiles(self) -> int:
        with self._lock:
            active_ids = [p.id for p in self._profiles.values() if p.active]
            return sum(1 for pid in active_ids if self.deactivate_profile(pid))

    # ------------------------------------------------------------------
    # Webhook / retention / status
    # ------------------------------------------------------------------

    def get_default_settings(self) -> PolicySettings:
        with self._lock:
            return self._default_settings

    def set_default_settings(self, settings: PolicySettings) -> None:
        """Manual settings for cameras registered without a stored config."""
        with self._lock:
            self._default_settings = settings
            self._save_plugin_settings()
        logger.info(f"Default privacy settings: {describe_settings(settings)}")

    def get_webhook_config(self) -> WebhookConfig | None:
        with self._lock:
            return self._webhook

    def set_webhook_config(self, config: WebhookConfig | None) -> None:
        with self._lock:
            self._webhook = config
            self._save_plugin_settings()
        self.notifications.set_config(config)

    def set_retention_days(self, days: int) -> int:
        """Updates retention and prunes immediately. Returns entries removed."""
        self.audit_log.set_retention_days(days)
        with self._lock:
            self._retention_days = self.audit_log.retention_days
            self._save_plugin_settings()
        return self.audit_log.apply_retention()

    def get_status(self) -> dict:
        with self._lock:
            active = [p for p in self._profiles.values() if p.active]
            camera_count = len(self._cameras)
            panic = self._panic_mode

        webhook = self.notifications.get_config()
        return {
            "panic_mode": panic,
            "active_profile": active[0].name if active else None,
            "profile_count": len(self._profiles),
            "camera_count": camera_count,
            "schedules": self.schedule_engine.get_status(),
            "schedule_engine_running": self.schedule_engine.is_running,
            "webhook_configured": webhook is not None,
            "pending_notifications": self.notifications.pending_count,
            "audit_entries": len(self.audit_log.get_logs()),
            "audit_retention_days": self.audit_log.retention_days,
        }
