"""
Recording Block Strategies.

Devices differ in how recording is suppressed: older ones rely on a
local indicator the recorder checks, newer ones accept a recording
privacy mode. Both are available as interchangeable strategies.

Strategies act on a guard object exposing ``device`` (the wrapped camera)
and a ``recording_blocked`` indicator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol

logger = logging.getLogger(__name__)

PRIVACY_MODE_METHOD = "set_recording_privacy_mode"
PRIVACY_MODE_ATTRIBUTE = "recording_privacy_mode"


class RecordingTarget(Protocol):
    device: Any
    recording_blocked: bool


class RecordingBlockStrategy(ABC):
    """Applies or lifts a recording block."""

    name: str = ""

    @abstractmethod
    def supports(self, device: Any) -> bool:
        """Returns True if the strategy can act on ``device``."""

    @abstractmethod
    def _apply(self, target: RecordingTarget, blocked: bool) -> None:
        pass

    def apply(self, target: RecordingTarget, blocked: bool) -> bool:
        """
        Applies the block state.

        Returns:
            True on success. Failures are logged, never raised.
        """
        try:
            self._apply(target, blocked)
        except Exception as e:
            logger.error(
                f"Recording block strategy '{self.name}' failed: {e}", exc_info=True
            )
            return False
        logger.debug(f"Recording {'blocked' if blocked else 'allowed'} via {self.name}")
        return True


class IndicatorFlagStrategy(RecordingBlockStrategy):
    """Toggles the guard's local ``recording_blocked`` indicator only."""

    name = "indicator_flag"

    def supports(self, device: Any) -> bool:
        return True

    def _apply(self, target: RecordingTarget, blocked: bool) -> None:
        target.recording_blocked = blocked


class DevicePrivacyModeStrategy(RecordingBlockStrategy):
    """Sets the wrapped device's recording privacy mode."""

    name = "device_privacy_mode"

    def supports(self, device: Any) -> bool:
        return callable(getattr(device, PRIVACY_MODE_METHOD, None)) or hasattr(
            device, PRIVACY_MODE_ATTRIBUTE
        )

    def _apply(self, target: RecordingTarget, blocked: bool) -> None:
        setter = getattr(target.device, PRIVACY_MODE_METHOD, None)
        if callable(setter):
            setter(blocked)
        else:
            setattr(target.device, PRIVACY_MODE_ATTRIBUTE, blocked)
        target.recording_blocked = blocked


STRATEGIES: dict[str, type[RecordingBlockStrategy]] = {
    IndicatorFlagStrategy.name: IndicatorFlagStrategy,
    DevicePrivacyModeStrategy.name: DevicePrivacyModeStrategy,
}


def select_strategy(device: Any, preferred: str | None = None) -> RecordingBlockStrategy:
    """
    Picks the recording block strategy for a device.

    Args:
        device: The wrapped camera device.
        preferred: Strategy name to force ("indicator_flag" or
            "device_privacy_mode").

    Raises:
        ValueError: If ``preferred`` names no known strategy.
    """
    if preferred:
        if preferred not in STRATEGIES:
            raise ValueError(f"Unknown recording block strategy: {preferred}")
        return STRATEGIES[preferred]()

    privacy_mode = DevicePrivacyModeStrategy()
    if privacy_mode.supports(device):
        return privacy_mode
    return IndicatorFlagStrategy()
