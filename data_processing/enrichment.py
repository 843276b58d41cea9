# epicq_analytics/data_processing/enrichment.py
#
# Joins shared by several aggregators: latest metric per hospital, latest
# recruitment period per hospital, open alerts per hospital.

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .models import AlertRecord, CaseLoadStatistic, CaseMetricSample, RecruitmentPeriod

logger = logging.getLogger(__name__)


def latest_metrics_by_hospital(samples: Iterable[CaseMetricSample]) -> Dict[str, CaseMetricSample]:
    """
    The most recent sample for each hospital. On a same-day tie the sample
    delivered last by the adapter wins.
    """
    samples = list(samples)
    if not samples:
        return {}
    df = pd.DataFrame({
        'hospital_id': [s.hospital_id for s in samples],
        'recorded_date': [s.recorded_date for s in samples],
        'position': range(len(samples)),
    })
    latest = (
        df.sort_values(['recorded_date', 'position'], kind='mergesort')
        .drop_duplicates('hospital_id', keep='last')
    )
    return {row.hospital_id: samples[row.position] for row in latest.itertuples(index=False)}


def latest_period_statistic(
    periods: Iterable[RecruitmentPeriod]
) -> Tuple[Optional[RecruitmentPeriod], Optional[CaseLoadStatistic]]:
    """Highest-numbered period and its most recently updated case-load statistic."""
    periods = list(periods)
    if not periods:
        return None, None
    current = max(periods, key=lambda p: p.period_number)
    stats = current.case_load_statistics
    if not stats:
        return current, None
    dated = [s for s in stats if s.updated_at is not None]
    latest = max(dated, key=lambda s: s.updated_at) if dated else stats[-1]
    return current, latest


def periods_by_enrollment(periods: Iterable[RecruitmentPeriod]) -> Dict[Tuple[str, Optional[str]], List[RecruitmentPeriod]]:
    """Groups recruitment periods by (hospital_id, project_id)."""
    grouped: Dict[Tuple[str, Optional[str]], List[RecruitmentPeriod]] = {}
    for period in periods:
        grouped.setdefault((period.hospital_id, period.project_id), []).append(period)
    return grouped


def periods_for(
    grouped: Dict[Tuple[str, Optional[str]], List[RecruitmentPeriod]],
    hospital_id: str,
    project_id: Optional[str]
) -> List[RecruitmentPeriod]:
    """Periods of one enrollment; a record without a project sees all of the hospital's periods."""
    if project_id is not None:
        return grouped.get((hospital_id, project_id), [])
    return [p for (h_id, _), items in grouped.items() if h_id == hospital_id for p in items]


def open_alert_counts(alerts: Iterable[AlertRecord]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for alert in alerts:
        if not alert.is_resolved:
            counts[alert.hospital_id] = counts.get(alert.hospital_id, 0) + 1
    return counts
