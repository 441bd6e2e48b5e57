"""
Tests for historic series combination.
"""

from datetime import datetime, timedelta, timezone

from tcboard.data_models.stats import HistoricStatsPoint
from tcboard.services.historic import HistoricStatsCombiner
from tcboard.utils.time_utils import Granularity

H1 = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
H2 = H1 + timedelta(hours=1)


class TestHistoricStatsCombiner:

    def test_empty_input(self):
        assert HistoricStatsCombiner().combine([]) == []

    def test_single_point_unchanged(self):
        point = HistoricStatsPoint(H1, 500, 50, 5)
        assert HistoricStatsCombiner().combine([point]) == [point]

    def test_same_hour_points_are_summed(self):
        combined = HistoricStatsCombiner().combine_series([
            [HistoricStatsPoint(H1, 500, 50, 5)],
            [HistoricStatsPoint(H1, 100, 10, 1)],
        ])
        assert combined == [HistoricStatsPoint(H1, 600, 60, 6)]

    def test_distinct_hours_sorted_without_forward_fill(self):
        combined = HistoricStatsCombiner().combine_series([
            [HistoricStatsPoint(H1, 500, 50, 5)],
            [HistoricStatsPoint(H1, 100, 10, 1)],
            [HistoricStatsPoint(H2, 200, 20, 2)],
        ])
        assert combined == [
            HistoricStatsPoint(H1, 600, 60, 6),
            HistoricStatsPoint(H2, 200, 20, 2),
        ]

    def test_output_sorted_regardless_of_input_order(self):
        combined = HistoricStatsCombiner().combine([
            HistoricStatsPoint(H2, 1, 1, 1),
            HistoricStatsPoint(H1, 2, 2, 2),
        ])
        assert [point.timestamp for point in combined] == [H1, H2]

    def test_duplicates_within_one_series_are_additive(self):
        combined = HistoricStatsCombiner().combine([
            HistoricStatsPoint(H1, 10, 10, 1),
            HistoricStatsPoint(H1, 10, 10, 1),
        ])
        assert combined == [HistoricStatsPoint(H1, 20, 20, 2)]

    def test_daily_granularity_buckets_hours(self):
        next_day = H1 + timedelta(days=1)
        combined = HistoricStatsCombiner().combine(
            [HistoricStatsPoint(H1, 1, 2, 3), HistoricStatsPoint(H2, 1, 2, 3), HistoricStatsPoint(next_day, 5, 5, 5)],
            Granularity.DAY,
        )
        assert combined == [
            HistoricStatsPoint(datetime(2024, 3, 1, tzinfo=timezone.utc), 2, 4, 6),
            HistoricStatsPoint(datetime(2024, 3, 2, tzinfo=timezone.utc), 5, 5, 5),
        ]

    def test_monthly_granularity(self):
        combined = HistoricStatsCombiner().combine(
            [HistoricStatsPoint(H1, 1, 1, 1), HistoricStatsPoint(H1 + timedelta(days=10), 1, 1, 1)],
            Granularity.MONTH,
        )
        assert combined == [HistoricStatsPoint(datetime(2024, 3, 1, tzinfo=timezone.utc), 2, 2, 2)]

    def test_create_truncates_to_hour(self):
        point = HistoricStatsPoint.create(H1 + timedelta(minutes=42, seconds=7), 1, 1, 1)
        assert point.timestamp == H1
