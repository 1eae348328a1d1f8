"""Tests for RotationPolicy."""

import pytest

from comlog.errors import ConfigurationError
from comlog.rotation import DEFAULT_MAX_LINES_PER_FILE, RotationPolicy


class TestSizeRotation:
    def test_default_ceiling(self):
        policy = RotationPolicy(0)
        assert policy.max_lines_per_file == DEFAULT_MAX_LINES_PER_FILE == 500_000
        assert not policy.timed
        assert policy.interval_seconds is None

    def test_rotates_at_ceiling(self):
        policy = RotationPolicy(0, max_lines_per_file=3)
        assert not policy.should_rotate_after_write(2)
        assert policy.should_rotate_after_write(3)
        assert policy.should_rotate_after_write(4)

    def test_no_tick_rotation(self):
        assert not RotationPolicy(0).should_rotate_on_tick()


class TestTimedRotation:
    def test_interval(self):
        policy = RotationPolicy(20)
        assert policy.timed
        assert policy.interval_seconds == 1200.0

    def test_line_ceiling_disabled(self):
        policy = RotationPolicy(5, max_lines_per_file=3)
        for count in (3, 4, 1_000_000):
            assert not policy.should_rotate_after_write(count)

    def test_tick_rotation(self):
        assert RotationPolicy(1).should_rotate_on_tick()


class TestValidation:
    def test_negative_period(self):
        with pytest.raises(ConfigurationError):
            RotationPolicy(-1)

    def test_non_positive_max_lines(self):
        with pytest.raises(ConfigurationError):
            RotationPolicy(0, max_lines_per_file=0)

    def test_describe(self):
        assert RotationPolicy(15).describe() == "every 15 min"
        assert RotationPolicy(0, 10).describe() == "every 10 lines"
