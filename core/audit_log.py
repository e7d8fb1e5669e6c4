"""
Audit Log Core - Privacy Change History.

Append-only record of every effective policy transition, newest first.
Bounded by entry count (MAX_ENTRIES) and age (retention days) on every
write. Reads are served from an in-memory cache that is loaded from
storage once and kept in sync by every write.

Audit logging is best-effort: storage failures are logged and never
propagated to the policy change that triggered the write.
"""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from config import get_config
from core.privacy_types import POLICY_FIELDS, AuditEntry, PolicySettings, Trigger
from core.time_window import describe_settings
from utils.kv_storage import KeyValueStore

logger = logging.getLogger(__name__)

AUDIT_LOG_KEY = "auditLog"
MAX_ENTRIES = 1000
MS_PER_DAY = 24 * 60 * 60 * 1000


def describe_change(previous: PolicySettings | None, current: PolicySettings) -> str:
    """
    Lists the fields whose value changed, e.g. "Recording: BLOCKED".

    Without a previous state the full current state is described.
    """
    if previous is None:
        return describe_settings(current)

    changes = []
    for attr, _, label in POLICY_FIELDS:
        before, after = getattr(previous, attr), getattr(current, attr)
        if before != after:
            changes.append(f"{label}: {'BLOCKED' if after else 'allowed'}")

    return ", ".join(changes) if changes else "No changes"


class AuditLog:
    """Bounded, persisted log of privacy setting changes."""

    def __init__(
        self,
        storage: KeyValueStore,
        retention_days: int | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """
        Args:
            storage: Key-value store holding the serialized log.
            retention_days: Days to keep entries. Defaults to
                AUDIT_RETENTION_DAYS from config (30).
            clock: Returns epoch seconds. Defaults to time.time.
        """
        if retention_days is None:
            retention_days = get_config().get("AUDIT_RETENTION_DAYS", 30)
        self._storage = storage
        self._retention_days = max(1, int(retention_days))
        self._clock = clock or time.time
        self._cache: list[AuditEntry] | None = None
        self._lock = threading.RLock()

    @property
    def retention_days(self) -> int:
        return self._retention_days

    def set_retention_days(self, days: int) -> None:
        if int(days) < 1:
            raise ValueError("Retention must be at least one day")
        self._retention_days = int(days)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _cutoff_ms(self) -> int:
        return self._now_ms() - self._retention_days * MS_PER_DAY

    def _entries(self) -> list[AuditEntry]:
        """Returns the cached log, loading it from storage on first access."""
        if self._cache is not None:
            return self._cache

        entries: list[AuditEntry] = []
        try:
            stored = self._storage.get(AUDIT_LOG_KEY)
        except Exception as e:
            logger.error(f"Failed to read audit log: {e}")
            stored = None

        if stored:
            try:
                raw = json.loads(stored)
            except json.JSONDecodeError:
                logger.warning("Stored audit log is not valid JSON, starting empty")
                raw = []
            if not isinstance(raw, list):
                raw = []
            for item in raw:
                entry = AuditEntry.from_dict(item)
                if entry is None:
                    logger.debug(f"Skipping malformed audit entry: {item!r}")
                    continue
                entries.append(entry)

        self._cache = entries
        return entries

    def _persist(self, entries: list[AuditEntry]) -> None:
        try:
            self._storage.set(
                AUDIT_LOG_KEY, json.dumps([entry.to_dict() for entry in entries])
            )
        except Exception as e:
            logger.error(f"Failed to write audit log: {e}")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def log(
        self,
        camera_id: str | None,
        camera_name: str | None,
        previous_settings: PolicySettings | None,
        new_settings: PolicySettings,
        trigger: Trigger,
        profile_name: str | None = None,
    ) -> AuditEntry:
        """Records a change, applies both bounds and persists the log."""
        return self.log_entry(
            AuditEntry(
                timestamp=0,
                camera_id=camera_id,
                camera_name=camera_name,
                previous_settings=previous_settings,
                new_settings=new_settings,
                trigger=Trigger(trigger),
                profile_name=profile_name,
            )
        )

    def log_entry(self, entry: AuditEntry) -> AuditEntry:
        """Stores a prepared entry, stamped with the current time."""
        entry = replace(entry, timestamp=self._now_ms())

        with self._lock:
            entries = [entry] + self._entries()
            del entries[MAX_ENTRIES:]
            cutoff = self._cutoff_ms()
            entries = [e for e in entries if e.timestamp > cutoff]
            self._cache = entries
            self._persist(entries)

        logger.info(
            f"[Audit] {entry.trigger.value}: {entry.camera_name or 'Global'} - "
            f"{describe_change(entry.previous_settings, entry.new_settings)}"
        )
        return entry

    def log_manual(self, camera_id, camera_name, previous_settings, new_settings):
        return self.log(
            camera_id, camera_name, previous_settings, new_settings, Trigger.MANUAL
        )

    def log_schedule(self, camera_id, camera_name, previous_settings, new_settings):
        return self.log(
            camera_id, camera_name, previous_settings, new_settings, Trigger.SCHEDULE
        )

    def log_profile(
        self, camera_id, camera_name, previous_settings, new_settings, profile_name
    ):
        return self.log(
            camera_id,
            camera_name,
            previous_settings,
            new_settings,
            Trigger.PROFILE,
            profile_name=profile_name,
        )

    def log_panic(self, enabled: bool, previous_settings, new_settings):
        """Global entry for panic mode being switched on or off."""
        logger.debug(f"Recording panic mode {'ON' if enabled else 'OFF'}")
        return self.log(
            None, "All Cameras", previous_settings, new_settings, Trigger.PANIC
        )

    def clear_logs(self) -> None:
        with self._lock:
            self._cache = []
            self._persist([])
        logger.info("[Audit] Logs cleared")

    def apply_retention(self) -> int:
        """Drops entries older than the retention window. Returns the count removed."""
        with self._lock:
            entries = self._entries()
            cutoff = self._cutoff_ms()
            kept = [e for e in entries if e.timestamp > cutoff]
            removed = len(entries) - len(kept)
            if removed > 0:
                self._cache = kept
                self._persist(kept)
                logger.info(f"[Audit] Removed {removed} old log entries")
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_logs(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries())

    def get_logs_for_camera(self, camera_id: str) -> list[AuditEntry]:
        return [e for e in self.get_logs() if e.camera_id == camera_id]

    def get_logs_in_range(self, start_ms: int, end_ms: int) -> list[AuditEntry]:
        return [e for e in self.get_logs() if start_ms <= e.timestamp <= end_ms]

    def get_recent_logs(self, count: int = 50) -> list[AuditEntry]:
        return self.get_logs()[: max(0, count)]

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_logs(self) -> str:
        lines = []
        for entry in self.get_logs():
            timestamp = datetime.fromtimestamp(entry.timestamp / 1000).strftime(
                "%Y-%m-%d %H:%M:%S"
            )
            profile = f" ({entry.profile_name})" if entry.profile_name else ""
            change = describe_change(entry.previous_settings, entry.new_settings)
            lines.append(
                f"[{timestamp}] {entry.trigger.value.upper()}{profile}: "
                f"{entry.camera_name or 'Global'} - {change}"
            )
        return "\n".join(lines)

    def export_logs_json(self) -> str:
        return json.dumps([entry.to_dict() for entry in self.get_logs()], indent=2)
