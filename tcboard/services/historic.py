"""
Combination of per-user historic time series into a single series.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List

from tcboard.data_models.stats import HistoricStatsPoint
from tcboard.utils.time_utils import Granularity, truncate

logger = logging.getLogger(__name__)


class HistoricStatsCombiner:
    """Sums historic points sharing a timestamp bucket."""

    def combine(
        self,
        points: Iterable[HistoricStatsPoint],
        granularity: Granularity = Granularity.HOUR
    ) -> List[HistoricStatsPoint]:
        """
        Sum every point per bucket, sorted ascending by timestamp.

        Missing buckets are not forward-filled, and duplicate points within a
        bucket are all additive.
        """
        totals: Dict[datetime, List[int]] = defaultdict(lambda: [0, 0, 0])
        for point in points:
            bucket = totals[truncate(point.timestamp, granularity)]
            bucket[0] += point.points
            bucket[1] += point.multiplied_points
            bucket[2] += point.units

        return [
            HistoricStatsPoint(timestamp, points_sum, multiplied_sum, units_sum)
            for timestamp, (points_sum, multiplied_sum, units_sum) in sorted(totals.items())
        ]

    def combine_series(
        self,
        series_list: Iterable[Iterable[HistoricStatsPoint]],
        granularity: Granularity = Granularity.HOUR
    ) -> List[HistoricStatsPoint]:
        """Merge several per-user series into one."""
        series_list = [list(series) for series in series_list]
        logger.debug(f"Combining {len(series_list)} historic series at {granularity.value} granularity")
        return self.combine(
            (point for series in series_list for point in series),
            granularity,
        )
