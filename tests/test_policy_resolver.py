"""
Tests for effective policy resolution.
"""

import itertools

import pytest

from core.policy_resolver import ProfileOverlapError, find_active_profile, resolve
from core.privacy_types import ALL_ALLOWED, ALL_BLOCKED, PolicySettings, Profile

MANUAL = PolicySettings(block_motion_alerts=True)
SCHEDULED = PolicySettings(block_recording=True, block_streaming=True)
PROFILE = Profile(
    id="p1",
    name="Away",
    member_ids={"cam1"},
    settings=PolicySettings(block_events=True),
    active=True,
)


class TestPrecedence:
    def test_override_blocks_everything(self):
        assert resolve(True, True, SCHEDULED, PROFILE, MANUAL) == ALL_BLOCKED

    def test_override_beats_disabled(self):
        assert resolve(True, False, SCHEDULED, PROFILE, MANUAL) == ALL_BLOCKED

    def test_disabled_allows_everything(self):
        assert resolve(False, False, SCHEDULED, PROFILE, MANUAL) == ALL_ALLOWED

    def test_profile_beats_schedule(self):
        assert resolve(False, True, SCHEDULED, PROFILE, MANUAL) == PROFILE.settings

    def test_schedule_effective_used_without_profile(self):
        assert resolve(False, True, SCHEDULED, None, MANUAL) == SCHEDULED

    def test_missing_schedule_input_falls_back_to_manual(self):
        assert resolve(False, True, None, None, MANUAL) == MANUAL

    @pytest.mark.parametrize(
        "enabled,schedule,profile",
        list(itertools.product([True, False], [None, SCHEDULED, MANUAL], [None, PROFILE])),
    )
    def test_override_dominates_all_inputs(self, enabled, schedule, profile):
        assert resolve(True, enabled, schedule, profile, MANUAL) == ALL_BLOCKED

    @pytest.mark.parametrize(
        "schedule,profile",
        list(itertools.product([None, SCHEDULED, ALL_BLOCKED], [None, PROFILE])),
    )
    def test_disabled_camera_is_never_restricted(self, schedule, profile):
        assert resolve(False, False, schedule, profile, ALL_BLOCKED) == ALL_ALLOWED


class TestFindActiveProfile:
    def _profile(self, profile_id, members, active=True):
        return Profile(id=profile_id, name=profile_id.title(), member_ids=set(members), active=active)

    def test_returns_active_profile_containing_camera(self):
        profiles = [self._profile("home", ["cam1"], active=False), self._profile("away", ["cam1"])]
        assert find_active_profile(profiles, "cam1").id == "away"

    def test_ignores_non_members(self):
        profiles = [self._profile("away", ["cam2"])]
        assert find_active_profile(profiles, "cam1") is None

    def test_overlap_raises(self):
        profiles = [self._profile("home", ["cam1"]), self._profile("away", ["cam1", "cam2"])]

        with pytest.raises(ProfileOverlapError) as excinfo:
            find_active_profile(profiles, "cam1")

        assert excinfo.value.camera_id == "cam1"
        assert excinfo.value.profile_names == ["Home", "Away"]
        assert find_active_profile(profiles, "cam2").id == "away"
