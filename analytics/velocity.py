# epicq_analytics/analytics/velocity.py
#
# Recruitment velocity: cases per nominal day over day/week/month buckets,
# with a running cumulative total.

import logging
from datetime import date, timedelta
from typing import List, Sequence

import pandas as pd

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in velocity.py: Settings could not be imported. {e}", exc_info=True)
    raise

from data_processing.helpers import round_half_up
from data_processing.models import CaseMetricSample

from .schemas import VelocityPoint

logger = logging.getLogger(__name__)

GRANULARITIES = ('day', 'week', 'month')


def normalize_granularity(granularity: str) -> str:
    if granularity in GRANULARITIES:
        return granularity
    default = settings.defaults.granularity
    if granularity is not None:
        logger.warning(f"Unknown granularity '{granularity}'. Falling back to '{default}'.")
    return default


def bucket_key(recorded: date, granularity: str) -> str:
    """
    'day' -> YYYY-MM-DD, 'month' -> YYYY-MM, 'week' -> date of the week's
    first day (Monday or Sunday, per settings.velocity.week_anchor).
    """
    if granularity == 'month':
        return f"{recorded.year}-{recorded.month:02d}"
    if granularity == 'week':
        if settings.velocity.week_anchor == 'sunday':
            offset = (recorded.weekday() + 1) % 7
        else:
            offset = recorded.weekday()
        return (recorded - timedelta(days=offset)).isoformat()
    return recorded.isoformat()


def compute_velocity(samples: Sequence[CaseMetricSample], granularity: str = 'day') -> List[VelocityPoint]:
    """
    Sums cases per bucket, accumulates across buckets in chronological order
    and divides each bucket's cases by its nominal length (1, 7 or 30 days).
    Empty buckets are not synthesized.
    """
    granularity = normalize_granularity(granularity)
    if not samples:
        return []

    df = pd.DataFrame({
        'bucket': [bucket_key(s.recorded_date, granularity) for s in samples],
        'cases_created': [s.cases_created or 0 for s in samples],
    })
    # ISO keys sort chronologically as strings.
    per_bucket = df.groupby('bucket', sort=True)['cases_created'].sum()
    cumulative = per_bucket.cumsum()
    period_days = settings.velocity.period_days.get(granularity, 1) or 1

    return [
        VelocityPoint(
            date=str(key),
            cases_created=int(cases),
            cumulative_cases=int(cumulative[key]),
            velocity=round_half_up(float(cases) / period_days, 2),
        )
        for key, cases in per_bucket.items()
    ]
