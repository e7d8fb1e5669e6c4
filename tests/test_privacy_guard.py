"""
Tests for the camera privacy guard and recording block strategies.
"""

from unittest.mock import MagicMock

import pytest

from camera.privacy_guard import (
    CameraPrivacyGuard,
    CameraVariant,
    PrivacyBlockedError,
    UnsupportedCapabilityError,
    attach_guard,
    classify_variant,
    detect_capabilities,
)
from core.audit_log import AuditLog
from core.notification_dispatcher import NotificationDispatcher
from core.privacy_context import PrivacyContext
from core.privacy_types import ALL_ALLOWED, ALL_BLOCKED, PolicySettings
from core.recording_block import (
    DevicePrivacyModeStrategy,
    IndicatorFlagStrategy,
    select_strategy,
)
from core.schedule_engine import ScheduleEngine
from utils.kv_storage import MemoryStore


class StreamOnlyCamera:
    def __init__(self):
        self.stream_requests = []

    def get_video_stream(self, options=None):
        self.stream_requests.append(options)
        return "stream"

    def get_video_stream_options(self):
        return [{"id": "main"}]


class SnapshotCamera(StreamOnlyCamera):
    def take_picture(self, options=None):
        return b"jpeg"

    def get_picture_options(self):
        return [{"id": "hd"}]


class FullCamera(SnapshotCamera):
    motion_detected = False
    object_detection_enabled = True


class PrivacyModeCamera(StreamOnlyCamera):
    def __init__(self):
        super().__init__()
        self.privacy_mode_calls = []

    def set_recording_privacy_mode(self, enabled):
        self.privacy_mode_calls.append(enabled)


class BrokenPrivacyModeCamera(StreamOnlyCamera):
    def set_recording_privacy_mode(self, enabled):
        raise ConnectionError("device offline")


class TestCapabilities:
    def test_variants(self):
        assert classify_variant(detect_capabilities(StreamOnlyCamera())) == CameraVariant.STREAM_ONLY
        assert classify_variant(detect_capabilities(SnapshotCamera())) == CameraVariant.STREAM_AND_SNAPSHOT
        assert classify_variant(detect_capabilities(FullCamera())) == CameraVariant.FULL

    def test_full_camera_capabilities(self):
        assert detect_capabilities(FullCamera()) == {"video", "snapshot", "motion", "detection"}

    def test_device_without_stream_is_rejected(self):
        with pytest.raises(TypeError):
            CameraPrivacyGuard("cam1", object())


class TestStreaming:
    def test_allowed_stream_is_passed_through(self):
        device = StreamOnlyCamera()
        guard = CameraPrivacyGuard("cam1", device)

        assert guard.get_video_stream({"destination": "local"}) == "stream"
        assert guard.get_video_stream_options() == [{"id": "main"}]

    def test_blocked_streaming(self):
        device = StreamOnlyCamera()
        guard = CameraPrivacyGuard("cam1", device, PolicySettings(block_streaming=True))

        with pytest.raises(PrivacyBlockedError):
            guard.get_video_stream()
        assert guard.get_video_stream_options() == []
        assert device.stream_requests == []

    @pytest.mark.parametrize("destination", ["local-recorder", "remote-recorder"])
    def test_blocked_recording_refuses_recorder_streams(self, destination):
        guard = CameraPrivacyGuard("cam1", StreamOnlyCamera(), PolicySettings(block_recording=True))

        with pytest.raises(PrivacyBlockedError):
            guard.get_video_stream({"destination": destination})
        assert guard.get_video_stream({"destination": "medium-resolution"}) == "stream"


class TestSnapshots:
    def test_snapshot_allowed(self):
        guard = CameraPrivacyGuard("cam1", SnapshotCamera())

        assert guard.take_picture() == b"jpeg"
        assert guard.get_picture_options() == [{"id": "hd"}]

    def test_snapshot_blocked_with_streaming(self):
        guard = CameraPrivacyGuard("cam1", SnapshotCamera(), PolicySettings(block_streaming=True))

        with pytest.raises(PrivacyBlockedError):
            guard.take_picture()
        assert guard.get_picture_options() == []

    def test_snapshot_unsupported(self):
        device = StreamOnlyCamera()
        device.get_picture_options = lambda: [{"id": "hd"}]
        guard = CameraPrivacyGuard("cam1", device)

        assert guard.supports_snapshots is False
        with pytest.raises(UnsupportedCapabilityError):
            guard.take_picture()
        assert guard.get_picture_options() == []


class TestEvents:
    @pytest.mark.parametrize(
        "settings,event_kind,expected",
        [
            (ALL_ALLOWED, "motion", True),
            (PolicySettings(block_events=True), "doorbell", False),
            (PolicySettings(block_events=True), "motion", False),
            (PolicySettings(block_motion_alerts=True), "motion", False),
            (PolicySettings(block_motion_alerts=True), "detection", True),
            (PolicySettings(block_detection=True), "detection", False),
            (PolicySettings(block_detection=True), "doorbell", True),
        ],
    )
    def test_should_deliver(self, settings, event_kind, expected):
        guard = CameraPrivacyGuard("cam1", FullCamera(), settings)
        assert guard.should_deliver(event_kind) is expected

    @pytest.mark.parametrize("device_class", [StreamOnlyCamera, SnapshotCamera])
    def test_motion_needs_full_variant(self, device_class):
        guard = CameraPrivacyGuard("cam1", device_class())

        assert guard.supports_motion is False
        assert guard.should_deliver("motion") is False
        assert guard.should_deliver("doorbell") is True

    def test_full_variant_supports_motion(self):
        guard = CameraPrivacyGuard("cam1", FullCamera())

        assert guard.variant is CameraVariant.FULL
        assert guard.supports_motion is True
        assert guard.supports_snapshots is True


class TestRecordingBlock:
    def test_indicator_flag_strategy_for_plain_devices(self):
        guard = CameraPrivacyGuard("cam1", StreamOnlyCamera())
        assert isinstance(guard.strategy, IndicatorFlagStrategy)

        guard.apply_policy(PolicySettings(block_recording=True))
        assert guard.recording_blocked is True

        guard.apply_policy(ALL_ALLOWED)
        assert guard.recording_blocked is False

    def test_device_privacy_mode_strategy(self):
        device = PrivacyModeCamera()
        guard = CameraPrivacyGuard("cam1", device, ALL_BLOCKED)

        assert isinstance(guard.strategy, DevicePrivacyModeStrategy)
        assert device.privacy_mode_calls == [True]
        assert guard.recording_blocked is True

        guard.apply_policy(ALL_BLOCKED)
        guard.apply_policy(ALL_ALLOWED)
        assert device.privacy_mode_calls == [True, False]

    def test_device_attribute_privacy_mode(self):
        device = StreamOnlyCamera()
        device.recording_privacy_mode = False

        CameraPrivacyGuard("cam1", device, ALL_BLOCKED)

        assert device.recording_privacy_mode is True

    def test_strategy_failure_is_contained(self):
        guard = CameraPrivacyGuard("cam1", BrokenPrivacyModeCamera())

        assert guard.strategy.apply(guard, True) is False
        guard.apply_policy(ALL_BLOCKED)
        assert guard.recording_blocked is False

    def test_select_strategy(self):
        assert isinstance(select_strategy(PrivacyModeCamera(), "indicator_flag"), IndicatorFlagStrategy)
        with pytest.raises(ValueError):
            select_strategy(StreamOnlyCamera(), "unplug")


class TestAttachGuard:
    @pytest.fixture
    def context(self):
        store = MemoryStore()
        return PrivacyContext(
            store,
            schedule_engine=ScheduleEngine(check_interval=3600),
            audit_log=AuditLog(store, retention_days=30),
            notifications=MagicMock(spec=NotificationDispatcher),
        )

    def test_guard_follows_policy_changes(self, context):
        guard, release = attach_guard(context, "cam1", "Front Door", SnapshotCamera())
        other, _ = attach_guard(context, "cam2", "Garden", StreamOnlyCamera())

        context.update_camera_setting("cam1", "blockStreaming", "true")

        assert guard.settings == PolicySettings(block_streaming=True)
        assert other.settings == ALL_ALLOWED

        context.set_panic_mode(True)
        assert guard.settings == ALL_BLOCKED
        assert guard.recording_blocked is True

    def test_release_stops_updates(self, context):
        guard, release = attach_guard(context, "cam1", "Front Door", StreamOnlyCamera())

        release()
        context.set_panic_mode(True)

        assert guard.settings == ALL_ALLOWED
        with pytest.raises(KeyError):
            context.get_effective_settings("cam1")
