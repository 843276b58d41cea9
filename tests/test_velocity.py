from datetime import date, timedelta

import pytest

from analytics.velocity import bucket_key, compute_velocity, normalize_granularity
from config.settings import settings


def daily(make_sample, start, days, cases=1):
    return [make_sample('h1', start + timedelta(days=i), cases=cases) for i in range(days)]


def test_two_full_weeks_from_a_monday(make_sample):
    points = compute_velocity(daily(make_sample, date(2024, 1, 1), 14), 'week')

    assert [p.date for p in points] == ['2024-01-01', '2024-01-08']
    assert [p.cases_created for p in points] == [7, 7]
    assert [p.velocity for p in points] == [1.0, 1.0]
    assert [p.cumulative_cases for p in points] == [7, 14]


def test_cumulative_is_non_decreasing_and_ends_at_total(make_sample):
    samples = [
        make_sample('h1', '2024-01-03', cases=4),
        make_sample('h2', '2024-01-01', cases=0),
        make_sample('h1', '2024-01-01', cases=2),
        make_sample('h2', '2024-01-05', cases=3),
    ]
    points = compute_velocity(samples, 'day')
    cumulative = [p.cumulative_cases for p in points]

    assert [p.date for p in points] == ['2024-01-01', '2024-01-03', '2024-01-05']
    assert cumulative == sorted(cumulative)
    assert cumulative[-1] == 9


def test_month_buckets_use_nominal_thirty_days(make_sample):
    samples = daily(make_sample, date(2024, 1, 30), 4, cases=5)
    points = compute_velocity(samples, 'month')

    assert [p.date for p in points] == ['2024-01', '2024-02']
    assert [p.cases_created for p in points] == [10, 10]
    assert points[0].velocity == pytest.approx(0.33)


def test_unknown_or_missing_granularity_falls_back_to_day(make_sample):
    assert normalize_granularity(None) == 'day'
    assert normalize_granularity('fortnight') == 'day'
    points = compute_velocity(daily(make_sample, date(2024, 1, 1), 2), 'fortnight')
    assert [p.date for p in points] == ['2024-01-01', '2024-01-02']


def test_empty_input():
    assert compute_velocity([], 'week') == []


def test_gaps_are_not_filled(make_sample):
    samples = [make_sample('h1', '2024-01-01', cases=1), make_sample('h1', '2024-01-29', cases=1)]
    assert len(compute_velocity(samples, 'week')) == 2


class TestBucketKey:
    def test_day_and_month(self):
        assert bucket_key(date(2024, 3, 7), 'day') == '2024-03-07'
        assert bucket_key(date(2024, 3, 7), 'month') == '2024-03'

    def test_week_starts_on_monday_by_default(self):
        # 2024-01-07 is a Sunday.
        assert bucket_key(date(2024, 1, 7), 'week') == '2024-01-01'

    def test_sunday_anchor(self, monkeypatch):
        monkeypatch.setattr(settings.velocity, 'week_anchor', 'sunday')
        assert bucket_key(date(2024, 1, 7), 'week') == '2024-01-07'
        assert bucket_key(date(2024, 1, 6), 'week') == '2023-12-31'
