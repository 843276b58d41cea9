from datetime import date, datetime, timedelta

import pytest

from analytics.service import AnalyticsService
from data_processing.models import (
    AlertRecord,
    CaseLoadStatistic,
    CaseMetricSample,
    Communication,
    CoordinatorActivity,
    CoordinatorAssignment,
    HospitalSummary,
    ProgressRecord,
    RecruitmentPeriod,
)
from data_processing.repository import InMemoryRepository

TODAY = date(2024, 3, 1)


def sample(hospital_id, day, cases=0, completion=0.0, province=None, project_id='p1'):
    return CaseMetricSample(
        hospital_id=hospital_id,
        recorded_date=day if isinstance(day, date) else date.fromisoformat(day),
        cases_created=cases,
        completion_percentage=completion,
        province=province,
        project_id=project_id,
    )


@pytest.fixture
def hospitals():
    return [
        HospitalSummary(id='h1', name='Hospital Córdoba Centro', province='Córdoba', status='active', project_ids=['p1']),
        HospitalSummary(id='h2', name='Hospital Río Cuarto', province='Córdoba', status='active_recruiting', project_ids=['p1']),
        HospitalSummary(id='h3', name='Hospital La Plata', province='Buenos Aires', status='inactive', project_ids=['p1']),
    ]


@pytest.fixture
def progress_records():
    return [
        ProgressRecord(hospital_id='h1', project_id='p1', province='Córdoba', progress_percentage=40,
                       status='active', ethics_submitted=True, ethics_approved=True, required_periods=3),
        ProgressRecord(hospital_id='h2', project_id='p1', province='Córdoba', progress_percentage=60,
                       status='active', ethics_submitted=True, ethics_approved=False, required_periods=3),
        ProgressRecord(hospital_id='h3', project_id='p1', province='Buenos Aires', progress_percentage=10,
                       status='pending'),
    ]


@pytest.fixture
def case_metrics():
    start = TODAY - timedelta(days=20)
    samples = []
    for i in range(0, 20, 2):
        day = start + timedelta(days=i)
        samples.append(sample('h1', day, cases=2, completion=10 + i, province='Córdoba'))
        samples.append(sample('h2', day, cases=1, completion=20 + i / 2, province='Córdoba'))
    samples.append(sample('h3', TODAY - timedelta(days=1), cases=0, completion=5, province='Buenos Aires'))
    return sorted(samples, key=lambda s: s.recorded_date)


@pytest.fixture
def recruitment_periods():
    return [
        RecruitmentPeriod(hospital_id='h1', project_id='p1', period_number=1, case_load_statistics=[
            CaseLoadStatistic(cases_expected=50, cases_loaded=40, updated_at=datetime(2024, 1, 10)),
        ]),
        RecruitmentPeriod(hospital_id='h1', project_id='p1', period_number=2, case_load_statistics=[
            CaseLoadStatistic(cases_expected=60, cases_loaded=10, updated_at=datetime(2024, 2, 1)),
            CaseLoadStatistic(cases_expected=70, cases_loaded=12, updated_at=datetime(2024, 2, 15)),
        ]),
    ]


@pytest.fixture
def coordinators(case_metrics):
    latest_h1 = [s for s in case_metrics if s.hospital_id == 'h1'][-1]
    return [
        CoordinatorActivity(
            coordinator_id='u1',
            coordinator_name='Ana Pérez',
            hospital_id='h1',
            communications=[
                Communication(timestamp=datetime(2024, 2, 20, 9), responded_at=datetime(2024, 2, 20, 13)),
                Communication(timestamp=datetime(2024, 2, 22, 9)),
            ],
            latest_case_metric=latest_h1,
        ),
        CoordinatorActivity(coordinator_id='u2', coordinator_name=None),
    ]


@pytest.fixture
def alerts():
    return [
        AlertRecord(hospital_id='h1', project_id='p1', is_resolved=False),
        AlertRecord(hospital_id='h1', project_id='p1', is_resolved=True),
        AlertRecord(hospital_id='h3', project_id='p1', is_resolved=False),
    ]


@pytest.fixture
def repository(progress_records, case_metrics, hospitals, coordinators, recruitment_periods, alerts):
    return InMemoryRepository(
        progress_records=progress_records,
        case_metrics=case_metrics,
        hospitals=hospitals,
        coordinators=coordinators,
        recruitment_periods=recruitment_periods,
        alerts=alerts,
        assignments=[
            CoordinatorAssignment(user_id='u1', project_id='p1', hospital_id='h1'),
            CoordinatorAssignment(user_id='u9', project_id='p9', hospital_id='h9', is_active=False),
        ],
    )


@pytest.fixture
def service(repository):
    return AnalyticsService(repository, today=lambda: TODAY)


@pytest.fixture
def make_sample():
    return sample
