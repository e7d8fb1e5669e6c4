"""
Notification Dispatcher - Webhook Notifications.

Delivers privacy events to the configured webhook endpoint.

Features:
- Per-event subscription filter
- Bounded retry with linear backoff (attempt * retry_delay)
- Each delivery runs on its own thread; no ordering between deliveries
- flush() waits for in-flight deliveries without cancelling them
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests

from config import get_config
from core.privacy_types import (
    EventKind,
    NotificationPayload,
    PolicySettings,
    Trigger,
    WebhookConfig,
)
from utils.webhook_sender import WebhookDeliveryError, send_webhook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookTestResult:
    success: bool
    message: str


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationDispatcher:
    """Sends webhook payloads for subscribed privacy events."""

    def __init__(
        self,
        config: WebhookConfig | None = None,
        retry_count: int | None = None,
        retry_delay: float | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        """
        Args:
            config: Initial webhook configuration; None disables delivery.
            retry_count: Attempts per delivery (WEBHOOK_RETRY_COUNT, 3).
            retry_delay: Base backoff in seconds (WEBHOOK_RETRY_DELAY, 1.0).
            timeout: Per-request transport timeout (WEBHOOK_TIMEOUT, 10s).
            sleep: Backoff sleep function. Defaults to time.sleep.
        """
        app_config = get_config()
        self._config: WebhookConfig | None = config
        self._retry_count = max(
            1, int(retry_count or app_config.get("WEBHOOK_RETRY_COUNT", 3))
        )
        self._retry_delay = (
            retry_delay
            if retry_delay is not None
            else app_config.get("WEBHOOK_RETRY_DELAY", 1.0)
        )
        self._timeout = timeout or app_config.get("WEBHOOK_TIMEOUT", 10.0)
        self._sleep = sleep or time.sleep

        self._pending: set[threading.Thread] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_config(self, config: WebhookConfig | None) -> None:
        self._config = config
        if config:
            events = ", ".join(sorted(event.value for event in config.events))
            logger.info(f"Configured webhook to {config.url} for events: {events}")
        else:
            logger.info("Webhook disabled")

    def get_config(self) -> WebhookConfig | None:
        return self._config

    def is_enabled_for(self, event: EventKind) -> bool:
        config = self._config
        return config is not None and EventKind(event) in config.events

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    def _camera_name(self, camera: str | None) -> str | None:
        config = self._config
        if config is not None and not config.include_camera_details:
            return None
        return camera

    def notify_policy_change(
        self,
        camera: str,
        camera_id: str,
        settings: PolicySettings,
        trigger: Trigger,
    ) -> threading.Thread | None:
        if not self.is_enabled_for(EventKind.POLICY_CHANGED):
            return None

        payload = NotificationPayload(
            event=EventKind.POLICY_CHANGED,
            timestamp=_iso_now(),
            camera=self._camera_name(camera),
            camera_id=camera_id,
            settings=settings,
            trigger=Trigger(trigger),
        )
        return self._submit(payload)

    def notify_profile_activated(
        self,
        profile: str,
        trigger: Trigger,
        details: dict[str, Any] | None = None,
    ) -> threading.Thread | None:
        if not self.is_enabled_for(EventKind.PROFILE_ACTIVATED):
            return None

        payload = NotificationPayload(
            event=EventKind.PROFILE_ACTIVATED,
            timestamp=_iso_now(),
            profile=profile,
            trigger=Trigger(trigger),
            details=details,
        )
        return self._submit(payload)

    def notify_panic_mode(
        self, enabled: bool, trigger: Trigger = Trigger.PANIC
    ) -> threading.Thread | None:
        if not self.is_enabled_for(EventKind.PANIC_MODE):
            return None

        payload = NotificationPayload(
            event=EventKind.PANIC_MODE,
            timestamp=_iso_now(),
            trigger=Trigger(trigger),
            details={"enabled": enabled},
        )
        return self._submit(payload)

    def notify_schedule_triggered(
        self,
        camera: str,
        camera_id: str,
        settings: PolicySettings,
        action: str,
    ) -> threading.Thread | None:
        """``action`` is "start" or "end"."""
        if not self.is_enabled_for(EventKind.SCHEDULE_TRIGGERED):
            return None

        payload = NotificationPayload(
            event=EventKind.SCHEDULE_TRIGGERED,
            timestamp=_iso_now(),
            camera=self._camera_name(camera),
            camera_id=camera_id,
            settings=settings,
            trigger=Trigger.SCHEDULE,
            details={"action": action},
        )
        return self._submit(payload)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _submit(self, payload: NotificationPayload) -> threading.Thread | None:
        config = self._config
        if config is None:
            return None

        thread = threading.Thread(
            target=self._deliver,
            args=(config, payload),
            name=f"Webhook-{payload.event.value}",
            daemon=True,
        )
        with self._pending_lock:
            self._pending.add(thread)
            thread.start()
        return thread

    def _deliver(self, config: WebhookConfig, payload: NotificationPayload) -> None:
        try:
            self._send_with_retry(config, payload)
        finally:
            with self._pending_lock:
                self._pending.discard(threading.current_thread())

    def _send_with_retry(
        self, config: WebhookConfig, payload: NotificationPayload
    ) -> bool:
        body = payload.to_dict()

        for attempt in range(1, self._retry_count + 1):
            try:
                send_webhook(config.url, body, config.headers, timeout=self._timeout)
                logger.info(f"Sent {payload.event.value} webhook notification")
                return True
            except (requests.RequestException, WebhookDeliveryError) as e:
                logger.warning(
                    f"Webhook attempt {attempt}/{self._retry_count} failed: {e}"
                )

            if attempt < self._retry_count:
                self._sleep(self._retry_delay * attempt)

        logger.error(
            f"Failed to send {payload.event.value} webhook after "
            f"{self._retry_count} attempts"
        )
        return False

    def flush(self, timeout: float | None = None) -> None:
        """Waits until every in-flight delivery has finished."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._pending_lock:
                pending = list(self._pending)
            if not pending:
                return
            for thread in pending:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return
                thread.join(remaining)

    def test(self) -> WebhookTestResult:
        """One direct delivery attempt, ignoring the subscription filter."""
        config = self._config
        if config is None:
            return WebhookTestResult(False, "Webhook not configured")

        payload = NotificationPayload(
            event=EventKind.POLICY_CHANGED,
            timestamp=_iso_now(),
            trigger=Trigger.MANUAL,
            details={"test": True},
        )
        try:
            send_webhook(
                config.url, payload.to_dict(), config.headers, timeout=self._timeout
            )
        except (requests.RequestException, WebhookDeliveryError) as e:
            return WebhookTestResult(False, f"Webhook test failed: {e}")
        return WebhookTestResult(True, "Webhook test successful")
