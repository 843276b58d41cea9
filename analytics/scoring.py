# epicq_analytics/analytics/scoring.py
#
# Heatmap/bubble activity scoring and coordinator performance scoring.
# Both are fixed weighted blends whose weights live in settings.scoring.

import logging
from typing import Optional, Tuple

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in scoring.py: Settings could not be imported. {e}", exc_info=True)
    raise

from data_processing.helpers import round_half_up
from data_processing.models import CaseMetricSample, CoordinatorActivity, HospitalSummary, ProgressRecord

from .schemas import ActivityScore, BubblePoint, HeatmapCell, PerformanceMetrics

logger = logging.getLogger(__name__)


def activity_category(score: float) -> str:
    """Lower bound of each band is inclusive."""
    cfg = settings.scoring
    if score >= cfg.activity_high:
        return 'high'
    if score >= cfg.activity_medium:
        return 'medium'
    if score >= cfg.activity_low:
        return 'low'
    return 'inactive'


def _activity_inputs(
    progress: Optional[ProgressRecord],
    metrics: Optional[CaseMetricSample]
) -> Tuple[float, float, int]:
    progress_value = (progress.progress_percentage if progress else 0) or 0
    completion_value = (metrics.completion_percentage if metrics else 0) or 0
    cases_value = (metrics.cases_created if metrics else 0) or 0
    return progress_value, completion_value, cases_value


def compute_activity_score(
    progress: Optional[ProgressRecord],
    metrics: Optional[CaseMetricSample]
) -> ActivityScore:
    """
    score = progress * 0.4 + completion * 0.3 + (30 if any cases else 0).

    A missing metrics sample counts as zero completion and zero cases. The
    result is held to [0, 100] so stray out-of-range inputs cannot leak
    past the scale.
    """
    cfg = settings.scoring
    progress_value, completion_value, cases_value = _activity_inputs(progress, metrics)
    raw = (
        progress_value * cfg.activity_progress_weight
        + completion_value * cfg.activity_completion_weight
        + (cfg.activity_case_bonus if cases_value > 0 else 0)
    )
    score = min(100.0, max(0.0, raw))
    return ActivityScore(value=round_half_up(score), category=activity_category(score))


def build_heatmap_cell(
    hospital: HospitalSummary,
    progress: Optional[ProgressRecord],
    metrics: Optional[CaseMetricSample]
) -> HeatmapCell:
    score = compute_activity_score(progress, metrics)
    return HeatmapCell(
        hospital_id=hospital.id,
        hospital_name=hospital.name or 'Unknown',
        province=hospital.province or 'Unknown',
        value=score.value,
        category=score.category,
    )


def build_bubble_point(
    hospital: HospitalSummary,
    progress: Optional[ProgressRecord],
    metrics: Optional[CaseMetricSample]
) -> BubblePoint:
    """Same inputs as the activity score, kept apart for 2D correlation charts."""
    progress_value, completion_value, cases_value = _activity_inputs(progress, metrics)
    return BubblePoint(
        x=progress_value,
        y=completion_value,
        size=cases_value,
        label=hospital.name or 'Unknown',
        category=hospital.province or 'Unknown',
    )


def coordinator_rating(score: float) -> str:
    cfg = settings.scoring
    if score >= cfg.rating_excellent:
        return 'Excellent'
    if score >= cfg.rating_good:
        return 'Good'
    if score >= cfg.rating_fair:
        return 'Fair'
    return 'Low'


def _response_time_hours(activity: CoordinatorActivity) -> Tuple[float, bool]:
    """Mean reply latency in hours and whether any stand-in value was used."""
    communications = activity.communications
    if not communications:
        return 0.0, False
    fallback = settings.placeholders.fallback_response_time_hours
    used_fallback = False
    total = 0.0
    for comm in communications:
        if comm.responded_at is not None and comm.responded_at >= comm.timestamp:
            total += (comm.responded_at - comm.timestamp).total_seconds() / 3600
        else:
            total += fallback
            used_fallback = True
    return total / len(communications), used_fallback


def _alert_resolution_rate(activity: CoordinatorActivity) -> Tuple[float, bool]:
    """Resolved share of the hospital's alerts, or the documented placeholder."""
    alerts = [a for a in activity.alerts if activity.hospital_id is None or a.hospital_id == activity.hospital_id]
    if not alerts:
        return settings.placeholders.alert_resolution_rate, True
    resolved = sum(1 for a in alerts if a.is_resolved)
    return float(round_half_up(resolved / len(alerts) * 100)), False


def score_coordinator(activity: CoordinatorActivity) -> PerformanceMetrics:
    cfg = settings.scoring
    latest = activity.latest_case_metric
    cases_created = (latest.cases_created if latest else 0) or 0
    average_completion = (latest.completion_percentage if latest else 0) or 0

    response_time, response_is_estimate = _response_time_hours(activity)
    response_time = round_half_up(response_time)
    resolution_rate, resolution_is_placeholder = _alert_resolution_rate(activity)

    if response_is_estimate or resolution_is_placeholder:
        logger.debug(
            f"Coordinator {activity.coordinator_id}: response time estimated={response_is_estimate}, "
            f"alert resolution placeholder={resolution_is_placeholder}."
        )

    score = (
        average_completion * cfg.coordinator_completion_weight
        + (cfg.coordinator_case_bonus if cases_created > 0 else 0)
        + (100 - response_time) * cfg.coordinator_response_weight
        + resolution_rate * cfg.coordinator_alert_weight
    )
    return PerformanceMetrics(
        coordinator_id=activity.coordinator_id,
        coordinator_name=activity.coordinator_name or 'Unknown',
        cases_created=cases_created,
        average_completion=average_completion,
        response_time=response_time,
        alert_resolution_rate=resolution_rate,
        score=round_half_up(score, 2),
        rating=coordinator_rating(score),
        response_time_is_estimate=response_is_estimate,
        alert_resolution_rate_is_placeholder=resolution_is_placeholder,
    )
