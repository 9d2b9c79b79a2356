"""
Tests for /api/set parameter handling.
"""

from unittest.mock import MagicMock, call

import pytest

from depthcam.api.commands import apply_commands, parse_flag, parse_float, parse_int
from depthcam.state import RenderMode, TintMode


@pytest.fixture
def components():
    """Camera, capture and tilt mocks sharing one parent to record call order."""
    parent = MagicMock()
    return parent, parent.camera, parent.capture, parent.tilt


class TestParsers:
    """Tests for value parsing."""

    @pytest.mark.parametrize(
        "value,current,expected",
        [("toggle", True, False), ("toggle", False, True), ("1", False, True),
         ("on", False, True), ("false", True, False), ("maybe", True, None)],
    )
    def test_parse_flag(self, value, current, expected):
        assert parse_flag(value, current) is expected

    def test_parse_numbers(self):
        assert parse_int(" 12 ") == 12
        assert parse_int("1.5") is None
        assert parse_float("40.5") == 40.5
        assert parse_float("abc") is None
        assert parse_float("nan") is None
        assert parse_float("inf") is None


class TestApplyCommands:
    """Tests for command application."""

    def test_fixed_order(self, state, components):
        """Test mode, snapshot, record and tilt apply in that order."""
        parent, camera, capture, tilt = components
        params = {"tilt": "up", "record": "12", "snap": "1", "mode": "ir"}

        applied = apply_commands(params, state, camera, capture, tilt)

        assert applied == ["mode", "snap", "record", "tilt"]
        assert parent.mock_calls == [
            call.camera.request_mode(RenderMode.INFRARED),
            call.capture.save_snapshot(manual=True),
            call.capture.start_recording(12),
            call.tilt.apply(relative="up", absolute=None),
        ]

    def test_tilt_abs_reported(self, state, components):
        _, camera, capture, tilt = components
        assert apply_commands({"tiltAbs": "-5"}, state, camera, capture, tilt) == ["tiltAbs"]
        tilt.apply.assert_called_once_with(relative=None, absolute="-5")

    def test_mode_without_camera_updates_state(self, state):
        apply_commands({"mode": "ir"}, state)
        assert state.mode is RenderMode.INFRARED
        assert state.auto_night is False

    def test_unknown_mode_ignored(self, state, components):
        _, camera, capture, tilt = components
        assert apply_commands({"mode": "thermal"}, state, camera, capture, tilt) == []
        camera.request_mode.assert_not_called()

    def test_toggles(self, state):
        apply_commands({"auto": "toggle", "tint": "toggle", "smooth": "0", "skeleton": "off"}, state)
        assert state.auto_night is False
        assert state.tint is TintMode.GREEN
        assert state.smooth is False
        assert state.show_skeleton is False

    def test_jpeg_quality_clamped(self, state):
        apply_commands({"jpeg": "5"}, state)
        assert state.jpeg_quality == 10

    def test_night_pushes_day_up(self, state):
        apply_commands({"night": "50"}, state)
        assert state.night_threshold == 50
        assert state.day_threshold == 51

    def test_malformed_values_ignored(self, state, components):
        _, camera, capture, tilt = components
        params = {"jpeg": "high", "night": "dark", "auto": "perhaps", "record": "long"}
        before = state.get_status()

        assert apply_commands(params, state, camera, capture, tilt) == []
        assert state.get_status() == before
        capture.start_recording.assert_not_called()

    def test_empty_values_ignored(self, state, components):
        _, camera, capture, tilt = components
        assert apply_commands({"snap": "", "tilt": ""}, state, camera, capture, tilt) == []
        capture.save_snapshot.assert_not_called()
        tilt.apply.assert_not_called()

    def test_snap_zero_ignored(self, state, components):
        _, camera, capture, tilt = components
        apply_commands({"snap": "0"}, state, camera, capture, tilt)
        capture.save_snapshot.assert_not_called()
