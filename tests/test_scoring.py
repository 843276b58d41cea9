from datetime import datetime

import pytest

from analytics.scoring import (
    activity_category,
    build_bubble_point,
    build_heatmap_cell,
    compute_activity_score,
    coordinator_rating,
    score_coordinator,
)
from data_processing.models import (
    AlertRecord,
    CaseMetricSample,
    Communication,
    CoordinatorActivity,
    HospitalSummary,
    ProgressRecord,
)


def progress(pct):
    return ProgressRecord(hospital_id='h1', progress_percentage=pct)


def metrics(cases=0, completion=0.0):
    return CaseMetricSample(hospital_id='h1', recorded_date='2024-01-01',
                            cases_created=cases, completion_percentage=completion)


class TestActivityScore:
    def test_full_activity_scores_one_hundred(self):
        score = compute_activity_score(progress(100), metrics(cases=5, completion=100))
        assert score.value == 100
        assert score.category == 'high'

    def test_missing_metrics_counts_as_zero(self):
        score = compute_activity_score(progress(50), None)
        assert score.value == 20
        assert score.category == 'low'

    def test_case_bonus_is_flat(self):
        one = compute_activity_score(progress(0), metrics(cases=1))
        many = compute_activity_score(progress(0), metrics(cases=500))
        assert one.value == many.value == 30

    @pytest.mark.parametrize('score, category', [
        (80, 'high'), (79.99, 'medium'), (50, 'medium'),
        (49.9, 'low'), (20, 'low'), (19.9, 'inactive'), (0, 'inactive'),
    ])
    def test_category_lower_bounds_inclusive(self, score, category):
        assert activity_category(score) == category

    def test_halves_round_up(self):
        # 25 * 0.4 + 12.5 * 0.3 + 0 = 13.75 -> 14; 10 * 0.4 + 5 * 0.3 = 5.5 -> 6
        assert compute_activity_score(progress(25), metrics(completion=12.5)).value == 14
        assert compute_activity_score(progress(10), metrics(completion=5)).value == 6

    @pytest.mark.parametrize('pct, completion, cases', [
        (0, 0, 0), (100, 100, 10), (37, 81, 0), (99, 1, 3), (150, 200, 1),
    ])
    def test_score_stays_within_scale(self, pct, completion, cases):
        score = compute_activity_score(
            ProgressRecord.model_construct(hospital_id='h1', progress_percentage=pct),
            CaseMetricSample.model_construct(hospital_id='h1', cases_created=cases, completion_percentage=completion),
        )
        assert 0 <= score.value <= 100

    def test_heatmap_cell_and_bubble_point(self):
        hospital = HospitalSummary(id='h1', name=None, province=None)
        cell = build_heatmap_cell(hospital, progress(60), metrics(cases=2, completion=40))
        bubble = build_bubble_point(hospital, progress(60), metrics(cases=2, completion=40))

        assert cell.to_json() == {
            'hospitalId': 'h1', 'hospitalName': 'Unknown', 'province': 'Unknown',
            'value': 66, 'category': 'medium',
        }
        assert (bubble.x, bubble.y, bubble.size) == (60, 40, 2)


class TestCoordinatorScoring:
    def test_placeholders_are_flagged(self):
        activity = CoordinatorActivity(
            coordinator_id='u1',
            coordinator_name='Ana',
            communications=[Communication(timestamp=datetime(2024, 1, 1, 8))],
            latest_case_metric=metrics(cases=3, completion=50),
        )
        result = score_coordinator(activity)

        assert result.response_time == 24
        assert result.response_time_is_estimate is True
        assert result.alert_resolution_rate == 85
        assert result.alert_resolution_rate_is_placeholder is True
        # 50*0.4 + 30 + (100-24)*0.2 + 85*0.1 = 20 + 30 + 15.2 + 8.5
        assert result.score == pytest.approx(73.7)
        assert result.rating == 'Good'

    def test_measured_latency_and_resolution(self):
        activity = CoordinatorActivity(
            coordinator_id='u1',
            hospital_id='h1',
            communications=[
                Communication(timestamp=datetime(2024, 1, 1, 8), responded_at=datetime(2024, 1, 1, 10)),
                Communication(timestamp=datetime(2024, 1, 2, 8), responded_at=datetime(2024, 1, 2, 12)),
            ],
            alerts=[
                AlertRecord(hospital_id='h1', is_resolved=True),
                AlertRecord(hospital_id='h1', is_resolved=True),
                AlertRecord(hospital_id='h1', is_resolved=True),
                AlertRecord(hospital_id='h1', is_resolved=False),
            ],
        )
        result = score_coordinator(activity)

        assert result.response_time == 3
        assert result.response_time_is_estimate is False
        assert result.alert_resolution_rate == 75
        assert result.alert_resolution_rate_is_placeholder is False
        assert result.coordinator_name == 'Unknown'

    def test_no_communications_means_zero_response_time(self):
        result = score_coordinator(CoordinatorActivity(coordinator_id='u2'))
        assert result.response_time == 0
        assert result.cases_created == 0

    @pytest.mark.parametrize('score, rating', [
        (80, 'Excellent'), (79.9, 'Good'), (60, 'Good'), (40, 'Fair'), (39.9, 'Low'),
    ])
    def test_rating_bands(self, score, rating):
        assert coordinator_rating(score) == rating
