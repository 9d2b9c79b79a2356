"""
Tests for the tilt motor controller.
"""

import pytest

from depthcam.hardware.tilt import TiltController


@pytest.fixture
def tilt(mock_source, state):
    return TiltController(mock_source, state, step_degrees=2, cooldown_seconds=0.8)


class TestTargetResolution:
    """Tests for resolving relative/absolute commands."""

    @pytest.mark.parametrize(
        "relative,expected",
        [("up", 12), ("down", 8), ("UP", 12), ("-5", 5), ("+3", 13), (4, 14), ("sideways", 10), ("", 10)],
    )
    def test_relative(self, tilt, relative, expected):
        assert tilt.resolve_target(10, relative=relative) == expected

    def test_absolute_wins(self, tilt):
        assert tilt.resolve_target(10, relative="up", absolute="-3") == -3

    def test_malformed_absolute_keeps_angle(self, tilt):
        assert tilt.resolve_target(10, absolute="abc") == 10


class TestApply:
    """Tests for applying commands to the motor."""

    def test_absolute_clamped_to_range(self, tilt, mock_source, state):
        """Test tiltAbs=50 on a [-27, 27] device sets 27."""
        assert tilt.apply(absolute="50", now=0.0) == 27
        assert mock_source.elevation_angle == 27
        assert state.tilt_angle == 27

    def test_lower_clamp(self, tilt, mock_source):
        assert tilt.apply(absolute=-90, now=0.0) == -27

    def test_step_up(self, tilt, mock_source):
        assert tilt.apply(relative="up", now=0.0) == 2
        assert mock_source.elevation_angle == 2

    def test_cooldown(self, tilt, mock_source):
        """Test commands at 0 s and 0.9 s apply, 0.5 s is rejected."""
        assert tilt.apply(relative="up", now=0.0) == 2
        assert tilt.apply(relative="up", now=0.5) is None
        assert mock_source.elevation_angle == 2
        assert tilt.apply(relative="up", now=0.9) == 4
        assert tilt.get_status()["rejected"] == 1

    def test_no_change_does_not_stamp_cooldown(self, tilt, mock_source):
        assert tilt.apply(relative="garbage", now=0.0) is None
        assert tilt.cooldown.last_fired is None
        assert tilt.apply(relative="down", now=0.1) == -2

    def test_motor_failure(self, tilt, mock_source, state):
        mock_source.fail_tilt = True
        assert tilt.apply(relative="up", now=0.0) is None
        assert state.tilt_angle == 0
        assert tilt.cooldown.last_fired is None

    def test_status(self, tilt):
        tilt.apply(absolute=5, now=0.0)
        status = tilt.get_status()
        assert status["angle"] == 5
        assert status["range"] == (-27, 27)
        assert status["applied"] == 1
