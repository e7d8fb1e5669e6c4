"""
Policy Resolver - Effective Privacy Policy.

Combines the four policy sources into the single settings in force for a
camera. Precedence, first match wins:

1. Panic mode (global override) -> everything blocked
2. Privacy controls disabled for the camera -> everything allowed
3. Camera belongs to the active profile -> profile settings
4. Schedule settings while the schedule is active, else manual settings

Resolution is pure and never cached; callers re-resolve whenever an
input changes.
"""

from collections.abc import Iterable

from core.privacy_types import ALL_ALLOWED, ALL_BLOCKED, PolicySettings, Profile


class ProfileOverlapError(RuntimeError):
    """Raised when a camera belongs to more than one active profile."""

    def __init__(self, camera_id: str, profile_names: list[str]):
        self.camera_id = camera_id
        self.profile_names = profile_names
        super().__init__(
            f"Camera {camera_id} is a member of several active profiles: "
            f"{', '.join(profile_names)}"
        )


def resolve(
    global_override_active: bool,
    subject_enabled: bool,
    schedule_effective: PolicySettings | None,
    active_profile: Profile | None,
    manual_baseline: PolicySettings,
) -> PolicySettings:
    """
    Resolves the effective policy for one camera.

    Args:
        global_override_active: Panic mode state.
        subject_enabled: Whether privacy controls are enabled for the camera.
        schedule_effective: Schedule settings if the camera's schedule is
            active, otherwise the manual settings. None means "no schedule
            input" and falls back to ``manual_baseline``.
        active_profile: The active profile the camera belongs to, if any.
        manual_baseline: The camera's manual settings.

    Returns:
        The PolicySettings in force.
    """
    if global_override_active:
        return ALL_BLOCKED

    if not subject_enabled:
        return ALL_ALLOWED

    if active_profile is not None:
        return active_profile.settings

    if schedule_effective is None:
        return manual_baseline
    return schedule_effective


def find_active_profile(profiles: Iterable[Profile], camera_id: str) -> Profile | None:
    """
    Returns the active profile containing ``camera_id``.

    Raises:
        ProfileOverlapError: If more than one active profile contains it.
    """
    matches = [p for p in profiles if p.active and camera_id in p.member_ids]
    if len(matches) > 1:
        raise ProfileOverlapError(camera_id, [p.name for p in matches])
    return matches[0] if matches else None
