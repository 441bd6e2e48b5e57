"""
Tests for points normalization.
"""

import warnings

import pytest

from tcboard.data_models.competition import Hardware
from tcboard.data_models.stats import BaselineStats, OffsetAdjustment, RawStats
from tcboard.services.normalizer import PointsNormalizer, round_half_up
from tcboard.utils.exceptions import AnomalousInputWarning, ConfigurationError


class TestRoundHalfUp:

    def test_rounds_half_away_from_zero(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4

    def test_rounds_down_below_half(self):
        assert round_half_up(2.49) == 2


class TestPointsNormalizer:
    """Tests for PointsNormalizer.normalize."""

    def test_subtracts_baseline_and_applies_multiplier(self, make_user, slow_gpu):
        user = make_user(1, hardware_id=slow_gpu.id)
        stats = PointsNormalizer().normalize(
            user, RawStats(1_000, 30), BaselineStats(1, 600, 10), None, slow_gpu
        )
        assert stats.points == 400
        assert stats.multiplied_points == 1_000
        assert stats.units == 20

    def test_missing_baseline_and_offset_are_zero(self, make_user, gpu):
        stats = PointsNormalizer().normalize(make_user(1), RawStats(250, 5), None, None, gpu)
        assert (stats.points, stats.multiplied_points, stats.units) == (250, 250, 5)

    def test_offset_added_after_baseline(self, make_user, gpu):
        stats = PointsNormalizer().normalize(
            make_user(1), RawStats(100, 2), BaselineStats(1, 40, 1), OffsetAdjustment(-20, 3), gpu
        )
        assert stats.points == 40
        assert stats.units == 4

    def test_raw_below_baseline_clamps_to_zero(self, make_user, gpu):
        with pytest.warns(AnomalousInputWarning):
            stats = PointsNormalizer().normalize(
                make_user(1), RawStats(5, 0), BaselineStats(1, 10, 0), OffsetAdjustment(), gpu
            )
        assert stats.points == 0
        assert stats.multiplied_points == 0

    def test_negative_offset_clamps_to_zero(self, make_user, gpu):
        with pytest.warns(AnomalousInputWarning):
            stats = PointsNormalizer().normalize(
                make_user(1), RawStats(50, 1), None, OffsetAdjustment(-80, 0), gpu
            )
        assert stats.points == 0
        assert stats.units == 1

    def test_clamping_can_be_silent(self, make_user, gpu):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            stats = PointsNormalizer().normalize(
                make_user(1), RawStats(5, 0), BaselineStats(1, 10, 0), None, gpu, report_anomalies=False
            )
        assert stats.points == 0

    def test_multiplied_points_round_half_up(self, make_user):
        hardware = Hardware(id=1, hardware_name="TU102", display_name="RTX 2080 Ti", multiplier=1.5)
        stats = PointsNormalizer().normalize(make_user(1), RawStats(5, 0), None, None, hardware)
        assert stats.multiplied_points == 8

    def test_missing_hardware_is_configuration_error(self, make_user):
        with pytest.raises(ConfigurationError) as exc_info:
            PointsNormalizer().normalize(make_user(1), RawStats(5, 0), None, None, None)
        assert exc_info.value.user_id == 1

    def test_mismatched_hardware_is_configuration_error(self, make_user, slow_gpu):
        with pytest.raises(ConfigurationError):
            PointsNormalizer().normalize(make_user(1, hardware_id=1), RawStats(5, 0), None, None, slow_gpu)
