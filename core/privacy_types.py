"""
Privacy Types - Shared Data Model.

Defines the policy settings, schedules, profiles, audit entries and
webhook payloads passed between the core modules. Persisted and wire
representations use camelCase keys; the Python model uses snake_case.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "on"}


def parse_bool(value: Any) -> bool:
    """
    Parses a loosely typed setting value into a strict boolean.

    Accepts real booleans and the strings "true", "1", "yes", "on"
    (case-insensitive). Everything else is False.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, int):
        return value == 1
    return False


class ScheduleType(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    CUSTOM = "custom"


class Trigger(str, Enum):
    MANUAL = "manual"
    SCHEDULE = "schedule"
    PROFILE = "profile"
    PANIC = "panic"


class EventKind(str, Enum):
    POLICY_CHANGED = "policy_changed"
    PROFILE_ACTIVATED = "profile_activated"
    PANIC_MODE = "panic_mode"
    SCHEDULE_TRIGGERED = "schedule_triggered"


# (attribute, wire key, label)
POLICY_FIELDS = (
    ("block_recording", "blockRecording", "Recording"),
    ("block_events", "blockEvents", "Events"),
    ("block_streaming", "blockStreaming", "Streaming"),
    ("block_detection", "blockDetection", "Detection"),
    ("block_motion_alerts", "blockMotionAlerts", "Motion Alerts"),
)


@dataclass(frozen=True)
class PolicySettings:
    """
    Capability restrictions applied to a camera.

    Attributes:
        block_recording: Block video recording.
        block_events: Block motion/object detection events.
        block_streaming: Block live streaming and snapshots.
        block_detection: Block object detection processing.
        block_motion_alerts: Block motion alerts/notifications.
    """

    block_recording: bool = False
    block_events: bool = False
    block_streaming: bool = False
    block_detection: bool = False
    block_motion_alerts: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {wire: getattr(self, attr) for attr, wire, _ in POLICY_FIELDS}

    @classmethod
    def from_dict(
        cls, data: Any, default: "PolicySettings | None" = None
    ) -> "PolicySettings":
        """
        Builds settings from a camelCase or snake_case mapping.

        Missing keys keep the value from ``default``; a non-mapping input
        returns ``default`` (all allowed when not given).
        """
        base = default if default is not None else ALL_ALLOWED
        if not isinstance(data, dict):
            return base
        values = {}
        for attr, wire, _ in POLICY_FIELDS:
            if wire in data:
                values[attr] = parse_bool(data[wire])
            elif attr in data:
                values[attr] = parse_bool(data[attr])
        return replace(base, **values)

    def with_field(self, key: str, value: Any) -> "PolicySettings":
        """Returns a copy with one field (wire or attribute name) replaced."""
        for attr, wire, _ in POLICY_FIELDS:
            if key in (attr, wire):
                return replace(self, **{attr: parse_bool(value)})
        raise KeyError(key)

    def blocked_labels(self) -> list[str]:
        return [label for attr, _, label in POLICY_FIELDS if getattr(self, attr)]


ALL_ALLOWED = PolicySettings()
ALL_BLOCKED = PolicySettings(
    block_recording=True,
    block_events=True,
    block_streaming=True,
    block_detection=True,
    block_motion_alerts=True,
)

ALL_DAYS = frozenset(range(7))
WEEKDAYS = frozenset(range(1, 6))
WEEKEND_DAYS = frozenset({0, 6})


def days_for_schedule_type(schedule_type: ScheduleType) -> set[int]:
    """Returns the weekdays (0=Sunday) a non-custom schedule type covers."""
    if schedule_type == ScheduleType.WEEKDAYS:
        return set(WEEKDAYS)
    if schedule_type == ScheduleType.WEEKENDS:
        return set(WEEKEND_DAYS)
    return set(ALL_DAYS)


def _parse_days(raw: Any) -> set[int]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return set(ALL_DAYS)
    days = set()
    for value in raw:
        try:
            day = int(value)
        except (TypeError, ValueError, OverflowError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return days


@dataclass
class Schedule:
    """
    Recurring time window during which ``settings`` apply.

    Privacy turns ON at ``start_time`` and OFF at ``end_time``. ``days``
    (0=Sunday, 6=Saturday) is only authoritative for custom schedules.
    """

    enabled: bool = False
    type: ScheduleType = ScheduleType.DAILY
    start_time: str = "08:00"
    end_time: str = "22:00"
    days: set[int] = field(default_factory=lambda: set(ALL_DAYS))
    settings: PolicySettings = ALL_BLOCKED

    def applicable_days(self) -> set[int]:
        if self.type == ScheduleType.CUSTOM:
            return set(self.days)
        return days_for_schedule_type(self.type)

    def copy(self) -> "Schedule":
        return replace(self, days=set(self.days))

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "type": self.type.value,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "days": sorted(self.days),
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Schedule":
        if not isinstance(data, dict):
            return cls()
        try:
            schedule_type = ScheduleType(data.get("type", ScheduleType.DAILY.value))
        except ValueError:
            logger.warning(f"Unknown schedule type {data.get('type')!r}, using daily")
            schedule_type = ScheduleType.DAILY
        days = _parse_days(data.get("days"))
        if schedule_type != ScheduleType.CUSTOM:
            days = days_for_schedule_type(schedule_type)
        return cls(
            enabled=parse_bool(data.get("enabled", False)),
            type=schedule_type,
            start_time=str(data.get("startTime", "08:00")),
            end_time=str(data.get("endTime", "22:00")),
            days=days,
            settings=PolicySettings.from_dict(data.get("settings"), ALL_BLOCKED),
        )


@dataclass
class Profile:
    """Named group of cameras sharing one policy while active."""

    id: str
    name: str
    member_ids: set[str] = field(default_factory=set)
    settings: PolicySettings = ALL_BLOCKED
    active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "cameraIds": sorted(self.member_ids),
            "settings": self.settings.to_dict(),
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Profile | None":
        if not isinstance(data, dict) or not data.get("id"):
            return None
        members = data.get("cameraIds", [])
        if not isinstance(members, (list, tuple, set)):
            members = []
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "New Profile")),
            member_ids={str(member) for member in members},
            settings=PolicySettings.from_dict(data.get("settings"), ALL_BLOCKED),
            active=parse_bool(data.get("active", False)),
        )


@dataclass
class CameraPrivacyConfig:
    """Per-camera privacy configuration."""

    enabled: bool = True
    manual_settings: PolicySettings = ALL_ALLOWED
    schedule: Schedule = field(default_factory=Schedule)
    profile_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "manualSettings": self.manual_settings.to_dict(),
            "schedule": self.schedule.to_dict(),
            "profileIds": list(self.profile_ids),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CameraPrivacyConfig":
        if not isinstance(data, dict):
            return cls()
        profile_ids = data.get("profileIds", [])
        if not isinstance(profile_ids, list):
            profile_ids = []
        return cls(
            enabled=parse_bool(data.get("enabled", True)),
            manual_settings=PolicySettings.from_dict(data.get("manualSettings")),
            schedule=Schedule.from_dict(data.get("schedule")),
            profile_ids=[str(p) for p in profile_ids],
        )


@dataclass(frozen=True)
class AuditEntry:
    """
    One recorded policy transition.

    Attributes:
        timestamp: Epoch milliseconds when the change was recorded.
        camera_id: Camera ID (None for global changes).
        camera_name: Camera display name.
        previous_settings: Settings before the change, if known.
        new_settings: Settings after the change.
        trigger: What caused the change.
        profile_name: Profile name if triggered by a profile.
    """

    timestamp: int
    camera_id: str | None
    camera_name: str | None
    previous_settings: PolicySettings | None
    new_settings: PolicySettings
    trigger: Trigger
    profile_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "timestamp": self.timestamp,
            "cameraId": self.camera_id,
            "cameraName": self.camera_name,
            "previousSettings": (
                self.previous_settings.to_dict() if self.previous_settings else None
            ),
            "newSettings": self.new_settings.to_dict(),
            "trigger": self.trigger.value,
        }
        if self.profile_name:
            data["profileName"] = self.profile_name
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "AuditEntry | None":
        """Decodes a stored entry; returns None when it is malformed."""
        if not isinstance(data, dict):
            return None
        try:
            timestamp = int(data["timestamp"])
            trigger = Trigger(data["trigger"])
        except (KeyError, TypeError, ValueError, OverflowError):
            return None
        previous = data.get("previousSettings")
        return cls(
            timestamp=timestamp,
            camera_id=data.get("cameraId"),
            camera_name=data.get("cameraName"),
            previous_settings=(
                PolicySettings.from_dict(previous) if isinstance(previous, dict) else None
            ),
            new_settings=PolicySettings.from_dict(data.get("newSettings")),
            trigger=trigger,
            profile_name=data.get("profileName"),
        )


@dataclass
class NotificationPayload:
    """Webhook event body."""

    event: EventKind
    timestamp: str
    trigger: Trigger
    camera: str | None = None
    camera_id: str | None = None
    profile: str | None = None
    settings: PolicySettings | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "event": self.event.value,
            "timestamp": self.timestamp,
        }
        if self.camera is not None:
            data["camera"] = self.camera
        if self.camera_id is not None:
            data["cameraId"] = self.camera_id
        if self.profile is not None:
            data["profile"] = self.profile
        if self.settings is not None:
            data["settings"] = self.settings.to_dict()
        data["trigger"] = self.trigger.value
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class WebhookConfig:
    """Webhook endpoint and subscription."""

    url: str
    events: set[EventKind] = field(default_factory=lambda: set(EventKind))
    include_camera_details: bool = True
    headers: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "events": sorted(event.value for event in self.events),
            "includeCameraDetails": self.include_camera_details,
            "headers": dict(self.headers),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "WebhookConfig | None":
        if not isinstance(data, dict) or not data.get("url"):
            return None
        raw_events = data.get("events") or []
        if not isinstance(raw_events, (list, tuple, set)):
            logger.warning(f"Ignoring malformed webhook events {raw_events!r}")
            raw_events = []
        events = set()
        for raw in raw_events:
            try:
                events.add(EventKind(raw))
            except ValueError:
                logger.warning(f"Ignoring unknown webhook event {raw!r}")
        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            headers = {}
        return cls(
            url=str(data["url"]),
            events=events,
            include_camera_details=parse_bool(data.get("includeCameraDetails", True)),
            headers={str(k): str(v) for k, v in headers.items()},
        )
