# epicq_analytics/analytics/aggregation.py
#
# Geographic roll-ups of per-hospital metrics: province comparison,
# geographic distribution and the per-hospital progress table.

import logging
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from data_processing.enrichment import latest_period_statistic, open_alert_counts, periods_by_enrollment, periods_for
from data_processing.helpers import safe_average
from data_processing.models import (
    AlertRecord,
    CaseMetricSample,
    HospitalSummary,
    ProgressRecord,
    RecruitmentPeriod,
)

from .schemas import GeographicDistribution, HospitalProgress, ProvinceSummary

logger = logging.getLogger(__name__)

UNKNOWN = 'Unknown'
DISTRIBUTION_METRICS = ('cases', 'progress', 'alerts')


def aggregate_by_province(
    progress_records: Iterable[ProgressRecord],
    case_metrics_by_hospital: Mapping[str, CaseMetricSample],
    hospitals: Optional[Mapping[str, HospitalSummary]] = None,
    recruitment_periods: Iterable[RecruitmentPeriod] = ()
) -> List[ProvinceSummary]:
    """
    Groups progress records by the province stored on each record and
    summarizes each group. Averages are taken over the group's records and
    rounded; target/loaded case totals are only reported for provinces where
    case-load statistics exist.
    """
    records = list(progress_records)
    if not records:
        return []
    hospitals = hospitals or {}
    grouped_periods = periods_by_enrollment(recruitment_periods)

    rows = []
    for record in records:
        metric = case_metrics_by_hospital.get(record.hospital_id)
        hospital = hospitals.get(record.hospital_id)
        stats = [
            stat
            for period in periods_for(grouped_periods, record.hospital_id, record.project_id)
            for stat in period.case_load_statistics
        ]
        rows.append({
            'province': record.province or UNKNOWN,
            'hospital_id': record.hospital_id,
            'progress': record.progress_percentage or 0,
            'completion': (metric.completion_percentage if metric else 0) or 0,
            'cases': (metric.cases_created if metric else 0) or 0,
            'active_hospital_id': record.hospital_id if hospital is not None and hospital.is_active else None,
            'has_case_load': bool(stats),
            'target_cases': sum(s.cases_expected or 0 for s in stats),
            'loaded_cases': sum(s.cases_loaded or 0 for s in stats),
        })

    df = pd.DataFrame(rows)
    summary = df.groupby('province', sort=False).agg(
        hospital_count=('hospital_id', 'nunique'),
        record_count=('hospital_id', 'size'),
        total_progress=('progress', 'sum'),
        total_completion=('completion', 'sum'),
        total_cases=('cases', 'sum'),
        active_hospitals=('active_hospital_id', 'nunique'),
        has_case_load=('has_case_load', 'any'),
        total_target_cases=('target_cases', 'sum'),
        total_loaded_cases=('loaded_cases', 'sum'),
    )

    results = []
    for province, row in summary.iterrows():
        # A grouped province always has at least one record; the guard keeps
        # the average at 0 rather than NaN if that ever stops holding.
        record_count = int(row['record_count']) if int(row['hospital_count']) else 0
        results.append(ProvinceSummary(
            province=str(province),
            hospital_count=int(row['hospital_count']),
            total_cases=int(row['total_cases']),
            average_progress=safe_average(float(row['total_progress']), record_count),
            average_completion=safe_average(float(row['total_completion']), record_count),
            active_hospitals=int(row['active_hospitals']),
            total_target_cases=int(row['total_target_cases']) if row['has_case_load'] else None,
            total_loaded_cases=int(row['total_loaded_cases']) if row['has_case_load'] else None,
        ))
    logger.debug(f"Aggregated {len(records)} progress records into {len(results)} provinces.")
    return results


def geographic_distribution(
    hospitals: Iterable[HospitalSummary],
    progress_by_hospital: Mapping[str, ProgressRecord],
    case_metrics_by_hospital: Mapping[str, CaseMetricSample],
    alerts: Iterable[AlertRecord] = (),
    metric_type: str = 'cases'
) -> List[GeographicDistribution]:
    """Per-province sum of one per-hospital value plus the hospital count."""
    if metric_type not in DISTRIBUTION_METRICS:
        logger.warning(f"Unknown distribution metric '{metric_type}'. Falling back to 'cases'.")
        metric_type = 'cases'
    open_alerts = open_alert_counts(alerts) if metric_type == 'alerts' else {}

    totals: Dict[str, Dict[str, float]] = {}
    for hospital in hospitals:
        if metric_type == 'cases':
            metric = case_metrics_by_hospital.get(hospital.id)
            value = (metric.cases_created if metric else 0) or 0
        elif metric_type == 'progress':
            progress = progress_by_hospital.get(hospital.id)
            value = (progress.progress_percentage if progress else 0) or 0
        else:
            value = open_alerts.get(hospital.id, 0)
        entry = totals.setdefault(hospital.province or UNKNOWN, {'value': 0, 'count': 0})
        entry['value'] += value
        entry['count'] += 1

    return [
        GeographicDistribution(province=province, value=data['value'], count=int(data['count']))
        for province, data in totals.items()
    ]


def build_hospital_progress(
    progress_records: Iterable[ProgressRecord],
    case_metrics_by_hospital: Mapping[str, CaseMetricSample],
    hospitals: Optional[Mapping[str, HospitalSummary]] = None,
    recruitment_periods: Iterable[RecruitmentPeriod] = ()
) -> List[HospitalProgress]:
    """One status row per progress record, joined with its latest metric and period."""
    hospitals = hospitals or {}
    grouped_periods = periods_by_enrollment(recruitment_periods)

    rows = []
    for record in progress_records:
        hospital = hospitals.get(record.hospital_id)
        metric = case_metrics_by_hospital.get(record.hospital_id)
        period, stat = latest_period_statistic(
            periods_for(grouped_periods, record.hospital_id, record.project_id)
        )
        current_period = record.current_period_number or (period.period_number if period else None)
        rows.append(HospitalProgress(
            hospital_id=record.hospital_id,
            hospital_name=(hospital.name if hospital else None) or UNKNOWN,
            province=record.province or (hospital.province if hospital else None) or UNKNOWN,
            progress_percentage=record.progress_percentage or 0,
            cases_created=(metric.cases_created if metric else 0) or 0,
            completion_percentage=(metric.completion_percentage if metric else 0) or 0,
            status=record.status or 'pending',
            ethics_submitted=record.ethics_submitted,
            ethics_approved=record.ethics_approved,
            last_activity=metric.recorded_date.isoformat() if metric else None,
            target_cases=(stat.cases_expected or None) if stat else None,
            current_period=current_period or None,
            total_periods=record.required_periods or None,
        ))
    return rows
