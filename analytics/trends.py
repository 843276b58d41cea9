# epicq_analytics/analytics/trends.py
#
# Trend Aggregator: turns time-ordered case metric samples into chart points,
# plus the naive linear extrapolation used by the "predictions" view.

import logging
from datetime import date, timedelta
from typing import List, Mapping, Optional, Sequence

from data_processing.helpers import round_half_up
from data_processing.models import CaseMetricSample

from .schemas import TrendPoint

logger = logging.getLogger(__name__)

TREND_METRICS = ('cases', 'completion')


def compute_trend(
    samples: Sequence[CaseMetricSample],
    metric: str = 'cases',
    labels: Optional[Mapping[str, str]] = None
) -> List[TrendPoint]:
    """
    One point per sample, in input order. `metric='cases'` plots
    cases_created, `metric='completion'` plots completion_percentage.
    `labels` optionally maps hospital ids to display names.
    """
    if metric not in TREND_METRICS:
        logger.warning(f"Unknown trend metric '{metric}'. Falling back to 'cases'.")
        metric = 'cases'
    labels = labels or {}
    points = []
    for sample in samples:
        value = sample.cases_created if metric == 'cases' else sample.completion_percentage
        points.append(TrendPoint(
            date=sample.recorded_date.isoformat(),
            value=value or 0,
            label=labels.get(sample.hospital_id),
        ))
    return points


def project_metric_trend(points: Sequence[TrendPoint], days: int = 30) -> List[TrendPoint]:
    """
    Extends a trend `days` days past its last point using the average growth
    per point. Values never go below zero. Needs at least two points.
    """
    if len(points) < 2:
        logger.info(f"Only {len(points)} historical points; no extrapolation produced.")
        return []

    n = len(points)
    first_value, last_value = points[0].value, points[-1].value
    growth_rate = (last_value - first_value) / n
    last_date = date.fromisoformat(points[-1].date)

    projected = []
    for i in range(1, days + 1):
        value = max(0.0, last_value + growth_rate * (n + i))
        projected.append(TrendPoint(
            date=(last_date + timedelta(days=i)).isoformat(),
            value=round_half_up(value),
        ))
    return projected
