# epicq_analytics/analytics/prediction.py
#
# Completion Prediction Engine
# Derives a linear progress velocity from historical case metric samples,
# labels its trend and confidence, and projects a completion date at
# hospital, province or global level.
#
# The trend test is a midpoint-split heuristic, not a regression. Changing it
# moves classification boundaries that users already rely on.

import logging
import math
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy import stats

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in prediction.py: Settings could not be imported. {e}", exc_info=True)
    raise

from data_processing.helpers import round_half_up
from data_processing.models import CaseMetricSample, HospitalSummary, ProgressRecord

from .schemas import Prediction, VelocityStats

logger = logging.getLogger(__name__)

LEVELS = ('hospital', 'province', 'global')
TARGET_PROGRESS = 100


def normalize_level(level: Optional[str]) -> str:
    if level in LEVELS:
        return level
    default = settings.defaults.level
    if level is not None:
        logger.warning(f"Unknown prediction level '{level}'. Falling back to '{default}'.")
    return default


def instantaneous_velocities(samples: Sequence[CaseMetricSample]) -> List[float]:
    """
    Completion-percentage change per day between consecutive samples.
    Pairs recorded on the same day (or out of order) are skipped.
    """
    if len(samples) < 2:
        return []
    ordered = sorted(samples, key=lambda s: s.recorded_date)
    velocities = []
    for prev, curr in zip(ordered, ordered[1:]):
        days_between = (curr.recorded_date - prev.recorded_date).days
        if days_between <= 0:
            continue
        delta = (curr.completion_percentage or 0) - (prev.completion_percentage or 0)
        velocities.append(delta / days_between)
    return velocities


def classify_trend(velocities: Sequence[float], sample_count: Optional[int] = None) -> str:
    """
    Compares the mean of the velocities before the midpoint against the mean
    from the midpoint on. The midpoint is half the number of samples the
    velocities came from, which can sit past the middle of the velocity
    series itself.
    """
    midpoint = (len(velocities) if sample_count is None else sample_count) // 2
    first_half, second_half = velocities[:midpoint], velocities[midpoint:]
    first_avg = float(np.mean(first_half)) if len(first_half) else 0.0
    second_avg = float(np.mean(second_half)) if len(second_half) else 0.0

    cfg = settings.trend
    if second_avg > first_avg * cfg.improving_ratio:
        return 'improving'
    if second_avg < first_avg * cfg.declining_ratio:
        return 'declining'
    return 'stable'


def coefficient_of_variation(velocities: Sequence[float]) -> float:
    """Population std / |mean|; 1.0 when the mean is zero or there is no data."""
    if not len(velocities):
        return 1.0
    mean = float(np.mean(velocities))
    if mean == 0:
        return 1.0
    return abs(float(stats.variation(velocities)))


def classify_confidence(sample_count: int, cov: float) -> str:
    cfg = settings.trend
    if sample_count >= cfg.high_confidence_min_samples and cov < cfg.high_confidence_max_cov:
        return 'high'
    if sample_count >= cfg.medium_confidence_min_samples and cov < cfg.medium_confidence_max_cov:
        return 'medium'
    return 'low'


def derive_velocity_stats(samples: Sequence[CaseMetricSample]) -> VelocityStats:
    """
    Average velocity (2 decimals), trend and confidence for one history.
    Trend split and confidence thresholds count samples; `sample_count`
    reports the number of velocities.
    """
    if len(samples) < 2:
        return VelocityStats(avg_velocity=0.0, trend='stable', confidence='low', sample_count=0)

    velocities = instantaneous_velocities(samples)
    if not velocities:
        return VelocityStats(avg_velocity=0.0, trend='stable', confidence='low', sample_count=0)

    avg_velocity = float(np.mean(velocities))
    cov = coefficient_of_variation(velocities)
    return VelocityStats(
        avg_velocity=round_half_up(avg_velocity, 2),
        trend=classify_trend(velocities, len(samples)),
        confidence=classify_confidence(len(samples), cov),
        sample_count=len(velocities),
    )


def project_completion(current_progress: float, avg_velocity: float, today: date) -> Dict[str, object]:
    """
    Days and date until 100% at the given velocity. Non-positive velocities
    produce no projection; otherwise at least one day remains.
    """
    if avg_velocity <= 0:
        return {}
    days_remaining = max(1, math.ceil((TARGET_PROGRESS - current_progress) / avg_velocity))
    return {
        'predicted_days_remaining': days_remaining,
        'predicted_completion_date': (today + timedelta(days=days_remaining)).isoformat(),
    }


def _predict(
    entity_name: str,
    current_progress: float,
    history: Sequence[CaseMetricSample],
    today: date,
    entity_id: Optional[str] = None
) -> Prediction:
    velocity = derive_velocity_stats(history)
    return Prediction(
        entity_id=entity_id,
        entity_name=entity_name,
        current_progress=current_progress,
        target_progress=TARGET_PROGRESS,
        confidence=velocity.confidence,
        trend=velocity.trend,
        **project_completion(current_progress, velocity.avg_velocity, today),
    )


def _mean_progress(records: Sequence[ProgressRecord]) -> int:
    if not records:
        return 0
    return round_half_up(sum(r.progress_percentage or 0 for r in records) / len(records))


def predict_completion(
    level: str,
    current_progress: Sequence[ProgressRecord],
    historical_samples: Sequence[CaseMetricSample],
    horizon_days: Optional[int] = None,
    hospitals: Optional[Dict[str, HospitalSummary]] = None,
    today: Optional[date] = None
) -> List[Prediction]:
    """
    Predictions at the requested level.

    - hospital: one prediction per hospital, using its samples; when a
      hospital has several enrollments the last record sets its progress
    - province: records grouped by stored province; progress is the rounded
      mean and the trend is recomputed from the pooled samples of the province
    - global: a single prediction over everything

    Only samples recorded within `horizon_days` of `today` are considered.
    """
    level = normalize_level(level)
    today = today or date.today()
    horizon_days = horizon_days or settings.defaults.lookback_days
    hospitals = hospitals or {}

    window_start = today - timedelta(days=horizon_days)
    history = sorted(
        (s for s in historical_samples if s.recorded_date >= window_start),
        key=lambda s: s.recorded_date
    )
    logger.info(f"Predicting completion at '{level}' level from {len(history)} samples over {horizon_days} days.")
    if len(history) < 2:
        logger.warning(f"Insufficient history ({len(history)} samples since {window_start}); no completion dates projected.")

    if level == 'hospital':
        by_hospital: Dict[str, List[CaseMetricSample]] = {}
        for sample in history:
            by_hospital.setdefault(sample.hospital_id, []).append(sample)
        latest_records: Dict[str, ProgressRecord] = {}
        for record in current_progress:
            latest_records[record.hospital_id] = record
        predictions = []
        for record in latest_records.values():
            hospital = hospitals.get(record.hospital_id)
            predictions.append(_predict(
                entity_name=(hospital.name if hospital else None) or 'Unknown',
                current_progress=record.progress_percentage or 0,
                history=by_hospital.get(record.hospital_id, []),
                today=today,
                entity_id=record.hospital_id,
            ))
        return predictions

    if level == 'province':
        record_groups: Dict[str, List[ProgressRecord]] = {}
        for record in current_progress:
            record_groups.setdefault(record.province or 'Unknown', []).append(record)
        record_province = {r.hospital_id: r.province for r in current_progress if r.province}
        sample_groups: Dict[str, List[CaseMetricSample]] = {}
        for sample in history:
            province = sample.province or record_province.get(sample.hospital_id) or 'Unknown'
            sample_groups.setdefault(province, []).append(sample)
        return [
            _predict(
                entity_name=province,
                current_progress=_mean_progress(records),
                history=sample_groups.get(province, []),
                today=today,
            )
            for province, records in record_groups.items()
        ]

    return [_predict(
        entity_name='Global',
        current_progress=_mean_progress(list(current_progress)),
        history=history,
        today=today,
    )]
