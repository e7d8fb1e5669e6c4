"""
Camera Privacy Guard.

Wraps a camera device and enforces the effective privacy policy on
streaming, snapshots, recording and event delivery. The device's
capabilities are detected once at construction; the guard then behaves
according to one of a fixed set of variants.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from core.privacy_context import PrivacyContext
from core.privacy_types import ALL_ALLOWED, PolicySettings
from core.recording_block import RecordingBlockStrategy, select_strategy
from core.time_window import describe_settings

logger = logging.getLogger(__name__)

RECORDER_DESTINATIONS = ("local-recorder", "remote-recorder")


class PrivacyBlockedError(PermissionError):
    """Raised when a request is refused by the privacy policy."""


class UnsupportedCapabilityError(Exception):
    """Raised when the camera variant lacks the requested feature."""


class CameraVariant(str, Enum):
    """
    Camera variants, classified from detected capabilities.

    Snapshots are offered by STREAM_AND_SNAPSHOT and FULL cameras. Motion
    events are only delivered from FULL cameras.
    """

    STREAM_ONLY = "stream_only"
    STREAM_AND_SNAPSHOT = "stream_and_snapshot"
    FULL = "full"


def detect_capabilities(device: Any) -> set[str]:
    """Returns the capability names the device supports."""
    capabilities = set()
    if callable(getattr(device, "get_video_stream", None)):
        capabilities.add("video")
    if callable(getattr(device, "take_picture", None)):
        capabilities.add("snapshot")
    if hasattr(device, "motion_detected"):
        capabilities.add("motion")
    if callable(getattr(device, "get_detection_session", None)) or hasattr(
        device, "object_detection_enabled"
    ):
        capabilities.add("detection")
    return capabilities


def classify_variant(capabilities: set[str]) -> CameraVariant:
    if {"snapshot", "motion"} <= capabilities:
        return CameraVariant.FULL
    if "snapshot" in capabilities:
        return CameraVariant.STREAM_AND_SNAPSHOT
    return CameraVariant.STREAM_ONLY


class CameraPrivacyGuard:
    """
    Policy-enforcing wrapper around one camera device.

    Args:
        camera_id: Camera ID used by the privacy context.
        device: Wrapped camera object.
        settings: Initial effective settings.
        strategy: Recording block strategy; detected from the device when
            omitted.
    """

    def __init__(
        self,
        camera_id: str,
        device: Any,
        settings: PolicySettings = ALL_ALLOWED,
        strategy: RecordingBlockStrategy | None = None,
    ):
        if not callable(getattr(device, "get_video_stream", None)):
            raise TypeError(f"Camera {camera_id} does not provide a video stream")

        self.camera_id = camera_id
        self.device = device
        self.capabilities = detect_capabilities(device)
        self.variant = classify_variant(self.capabilities)
        self.strategy = strategy or select_strategy(device)
        self.recording_blocked = False
        self._settings = ALL_ALLOWED

        logger.info(
            f"Guarding camera {camera_id} as {self.variant.value} "
            f"(recording block: {self.strategy.name})"
        )
        self.apply_policy(settings)

    @property
    def settings(self) -> PolicySettings:
        return self._settings

    @property
    def supports_snapshots(self) -> bool:
        return self.variant is not CameraVariant.STREAM_ONLY

    @property
    def supports_motion(self) -> bool:
        return self.variant is CameraVariant.FULL

    def apply_policy(self, settings: PolicySettings) -> None:
        self._settings = settings
        # A failed strategy leaves recording_blocked stale; retried next time.
        if settings.block_recording != self.recording_blocked:
            self.strategy.apply(self, settings.block_recording)
        logger.debug(f"Camera {self.camera_id} policy: {describe_settings(settings)}")

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def get_video_stream(self, options: dict | None = None) -> Any:
        if self._settings.block_streaming:
            raise PrivacyBlockedError("Streaming is blocked by privacy policy")

        destination = (options or {}).get("destination")
        if self._settings.block_recording and destination in RECORDER_DESTINATIONS:
            raise PrivacyBlockedError("Recording is blocked by privacy policy")

        return self.device.get_video_stream(options)

    def get_video_stream_options(self) -> list:
        if self._settings.block_streaming:
            return []
        getter = getattr(self.device, "get_video_stream_options", None)
        return list(getter() or []) if callable(getter) else []

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def take_picture(self, options: dict | None = None) -> Any:
        if not self.supports_snapshots:
            raise UnsupportedCapabilityError(
                f"Camera {self.camera_id} has no snapshot support"
            )
        # Snapshots count as streaming
        if self._settings.block_streaming:
            raise PrivacyBlockedError("Snapshots are blocked by privacy policy")
        return self.device.take_picture(options)

    def get_picture_options(self) -> list:
        if self._settings.block_streaming or not self.supports_snapshots:
            return []
        getter = getattr(self.device, "get_picture_options", None)
        return list(getter() or []) if callable(getter) else []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def should_deliver(self, event_kind: str) -> bool:
        """
        Decides whether an event from the device may pass.

        ``motion`` and ``detection`` have their own switches on top of the
        general events switch. Motion events only come from FULL cameras.
        """
        settings = self._settings
        if settings.block_events:
            return False
        if event_kind == "motion":
            if not self.supports_motion:
                logger.debug(
                    f"Dropping motion event from {self.variant.value} camera {self.camera_id}"
                )
                return False
            return not settings.block_motion_alerts
        if event_kind == "detection":
            return not settings.block_detection
        return True


def attach_guard(
    context: PrivacyContext,
    camera_id: str,
    name: str,
    device: Any,
    strategy: RecordingBlockStrategy | None = None,
) -> tuple[CameraPrivacyGuard, Callable[[], None]]:
    """
    Registers a camera with the context and wraps it in a guard that
    follows every effective policy change.

    Returns:
        The guard and a release function that unsubscribes the guard and
        releases the camera.
    """
    settings = context.register_camera(camera_id, name)
    guard = CameraPrivacyGuard(camera_id, device, settings, strategy=strategy)

    def _on_policy(changed_id: str, new_settings: PolicySettings) -> None:
        if changed_id == camera_id:
            guard.apply_policy(new_settings)

    unsubscribe = context.add_policy_listener(_on_policy)

    def release() -> None:
        unsubscribe()
        context.release_camera(camera_id)

    return guard, release
