"""
Schedule Engine - Per-Camera Privacy Schedules.

Keeps a registry of camera schedules, re-evaluates them on a periodic
tick and notifies subscribers whenever a schedule enters or leaves its
active window.

Runs as a daemon thread inside the main application process. Ticks are
serialised: a slow tick delays the next one instead of overlapping it.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from config import get_config
from core.privacy_types import ALL_ALLOWED, PolicySettings, Schedule
from core.time_window import describe_schedule, is_active, next_change

logger = logging.getLogger(__name__)

SCHEDULE_START = "schedule_start"
SCHEDULE_END = "schedule_end"

ScheduleChangeCallback = Callable[[str, PolicySettings, str], None]


@dataclass
class ScheduleRegistration:
    camera_id: str
    schedule: Schedule
    currently_active: bool
    last_check: datetime


@dataclass(frozen=True)
class ScheduleInfo:
    schedule: Schedule | None
    is_active: bool
    next_change: datetime | None
    description: str


class ScheduleEngine:
    """
    Tracks camera schedules and raises activation/deactivation edges.

    Callbacks receive ``(camera_id, settings, reason)`` where reason is
    ``schedule_start`` (settings = the schedule's settings) or
    ``schedule_end`` (settings = everything allowed).
    """

    def __init__(
        self,
        check_interval: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            check_interval: Seconds between ticks. Defaults to
                SCHEDULE_CHECK_INTERVAL from config (60s).
            clock: Returns the current local time. Defaults to datetime.now.
        """
        if check_interval is None:
            check_interval = get_config().get("SCHEDULE_CHECK_INTERVAL", 60.0)
        self._check_interval = float(check_interval)
        self._clock = clock or datetime.now

        self._registrations: dict[str, ScheduleRegistration] = {}
        self._callbacks: list[ScheduleChangeCallback] = []
        self._lock = threading.Lock()
        self._tick_lock = threading.Lock()

        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def check_interval(self) -> float:
        return self._check_interval

    def start(self) -> None:
        """Starts the tick thread after one immediate check. Idempotent."""
        if self._thread is not None:
            return

        logger.info(
            f"Starting schedule engine (interval {self._check_interval:.0f}s)"
        )
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run,
            args=(stop_event,),
            name="PrivacyScheduleEngine",
            daemon=True,
        )

        self._check_schedules()
        self._thread.start()

    def stop(self) -> None:
        """Prevents future ticks. Does not wait for an in-flight tick."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread = None
        self._stop_event = None
        logger.info("Stopped schedule engine")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._check_interval):
            try:
                self._check_schedules()
            except Exception as e:
                logger.error(f"Schedule check failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_change(self, callback: ScheduleChangeCallback) -> Callable[[], None]:
        """Registers a callback; returns a function that unregisters it."""
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def _fire(self, camera_id: str, settings: PolicySettings, reason: str) -> None:
        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(camera_id, settings, reason)
            except Exception as e:
                logger.error(
                    f"Schedule callback failed for camera {camera_id}: {e}",
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def set_schedule(self, camera_id: str, schedule: Schedule) -> None:
        """
        Registers or replaces a camera's schedule.

        Re-registering an enabled schedule that is already inside its
        window fires ``schedule_start`` immediately when the camera was
        not active before.
        """
        now = self._clock()
        schedule = schedule.copy()
        active = is_active(schedule, now)

        with self._lock:
            previous = self._registrations.get(camera_id)
            self._registrations[camera_id] = ScheduleRegistration(
                camera_id=camera_id,
                schedule=schedule,
                currently_active=active,
                last_check=now,
            )

        if schedule.enabled:
            upcoming = next_change(schedule, now)
            logger.info(
                f"Registered schedule for camera {camera_id}: "
                f"{describe_schedule(schedule)}, currently "
                f"{'ACTIVE' if active else 'inactive'}"
                + (f", next change at {upcoming:%Y-%m-%d %H:%M}" if upcoming else "")
            )
        else:
            logger.debug(f"Registered disabled schedule for camera {camera_id}")

        if previous is not None and active and not previous.currently_active:
            logger.info(
                f"Camera {camera_id} schedule immediately ACTIVATED (within active window)"
            )
            self._fire(camera_id, schedule.settings, SCHEDULE_START)

    def remove_schedule(self, camera_id: str) -> None:
        with self._lock:
            removed = self._registrations.pop(camera_id, None)
        if removed is not None:
            logger.info(f"Removed schedule for camera {camera_id}")

    def get_schedule(self, camera_id: str) -> Schedule | None:
        with self._lock:
            registration = self._registrations.get(camera_id)
            return registration.schedule.copy() if registration else None

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _check_schedules(self) -> None:
        """Re-evaluates every schedule and fires callbacks for flips."""
        with self._tick_lock:
            now = self._clock()
            edges: list[tuple[str, PolicySettings, str]] = []

            with self._lock:
                for camera_id, registration in self._registrations.items():
                    active = is_active(registration.schedule, now)
                    if active == registration.currently_active:
                        continue

                    registration.currently_active = active
                    registration.last_check = now
                    if active:
                        edges.append(
                            (camera_id, registration.schedule.settings, SCHEDULE_START)
                        )
                    else:
                        edges.append((camera_id, ALL_ALLOWED, SCHEDULE_END))

            for camera_id, settings, reason in edges:
                logger.info(
                    f"Camera {camera_id} schedule "
                    f"{'ACTIVATED' if reason == SCHEDULE_START else 'DEACTIVATED'}"
                )
                self._fire(camera_id, settings, reason)

    def force_check(self) -> None:
        """Runs a tick now, e.g. after the system clock changed."""
        self._check_schedules()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_active(self, camera_id: str) -> bool:
        """Cached active flag as of the last tick or registration."""
        with self._lock:
            registration = self._registrations.get(camera_id)
            return bool(registration and registration.currently_active)

    def get_effective_settings(
        self, camera_id: str, baseline: PolicySettings
    ) -> PolicySettings:
        """
        Returns the schedule's settings if its window is active right now,
        otherwise ``baseline``. Always re-evaluates against the clock.
        """
        with self._lock:
            registration = self._registrations.get(camera_id)
            schedule = registration.schedule if registration else None

        if schedule is not None and is_active(schedule, self._clock()):
            return schedule.settings
        return baseline

    def get_info(self, camera_id: str) -> ScheduleInfo:
        with self._lock:
            registration = self._registrations.get(camera_id)
            if registration is None:
                return ScheduleInfo(
                    schedule=None,
                    is_active=False,
                    next_change=None,
                    description="No schedule configured",
                )
            schedule = registration.schedule.copy()
            active = registration.currently_active

        return ScheduleInfo(
            schedule=schedule,
            is_active=active,
            next_change=next_change(schedule, self._clock()),
            description=describe_schedule(schedule),
        )

    def get_active_list(self) -> list[str]:
        with self._lock:
            return [
                camera_id
                for camera_id, registration in self._registrations.items()
                if registration.currently_active
            ]

    def get_status(self) -> dict:
        now = self._clock()
        with self._lock:
            registrations = [
                (r.camera_id, r.schedule.copy(), r.currently_active)
                for r in self._registrations.values()
            ]

        entries = []
        for camera_id, schedule, active in registrations:
            upcoming = next_change(schedule, now)
            entries.append(
                {
                    "camera_id": camera_id,
                    "description": describe_schedule(schedule),
                    "is_active": active,
                    "next_change": upcoming.isoformat() if upcoming else None,
                }
            )

        return {
            "total_schedules": len(entries),
            "active_schedules": sum(1 for entry in entries if entry["is_active"]),
            "entries": entries,
        }
