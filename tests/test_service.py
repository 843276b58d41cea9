import json
from datetime import date

import pytest

from analytics.service import (
    SUPPORTED_METRICS,
    AnalyticsService,
    RequestUser,
    _metric_handlers,
    handle_analytics_request,
    parse_filters,
)
from analytics.errors import InvalidFilterError
from data_processing.errors import DataSourceError
from data_processing.models import AnalyticsFilters
from data_processing.repository import InMemoryRepository

TODAY = date(2024, 3, 1)
ADMIN = RequestUser(id='admin-1', role='admin')
COORDINATOR = RequestUser(id='u1', role='coordinator')


class BrokenRepository(InMemoryRepository):
    def __init__(self, error):
        super().__init__()
        self.error = error

    def list_case_metrics(self, filters=None):
        raise self.error


class TestRequestBoundary:
    def test_supported_metrics_match_handlers(self, service):
        assert set(SUPPORTED_METRICS) == set(_metric_handlers(service, {}))

    @pytest.mark.parametrize('metric', SUPPORTED_METRICS)
    def test_every_metric_answers_with_json_envelope(self, service, metric):
        response = handle_analytics_request(service, metric, {}, ADMIN)

        assert response.status_code == 200
        assert response.body['success'] is True
        assert response.body['metric'] == metric
        assert isinstance(response.body['data'], list)
        json.dumps(response.body)

    def test_case_trends_payload(self, service):
        response = handle_analytics_request(service, 'case_trends', {}, ADMIN)
        data = response.body['data']

        assert len(data) == 21
        assert data[0] == {'date': '2024-02-10', 'value': 2, 'label': 'Hospital Córdoba Centro'}

    def test_missing_metric_is_rejected(self, service):
        response = handle_analytics_request(service, None, {}, ADMIN)
        assert response.status_code == 400
        assert response.body == {
            'success': False,
            'error': 'Parameter "metric" is required',
            'code': 'ANL200',
            'details': {'metric': None},
        }

    def test_unknown_metric_is_rejected(self, service):
        response = handle_analytics_request(service, 'weather', {}, ADMIN)
        assert response.status_code == 400
        assert 'weather' in response.body['error']

    @pytest.mark.parametrize('params', [
        {'dateFrom': '2024-13-45'},
        {'dateTo': 'yesterday'},
        {'days': '0'},
    ])
    def test_malformed_filters_are_rejected(self, service, params):
        response = handle_analytics_request(service, 'case_trends', params, ADMIN)
        assert response.status_code == 400
        assert response.body['success'] is False

    def test_store_failure_maps_to_generic_500(self):
        service = AnalyticsService(BrokenRepository(ConnectionError('db down')), today=lambda: TODAY)
        response = handle_analytics_request(service, 'case_trends', {}, ADMIN)

        assert response.status_code == 500
        assert response.body == {'success': False, 'error': 'Internal server error'}

    def test_data_source_error_does_not_leak_details(self):
        service = AnalyticsService(BrokenRepository(DataSourceError('bad row 7', source='x.csv')), today=lambda: TODAY)
        response = handle_analytics_request(service, 'recruitment_velocity', {}, ADMIN)

        assert response.status_code == 500
        assert 'bad row' not in response.body['error']


class TestCoordinatorScope:
    def test_foreign_project_is_forbidden(self, service):
        response = handle_analytics_request(service, 'case_trends', {'projectId': 'p9'}, COORDINATOR)
        assert response.status_code == 403
        assert response.body['success'] is False
        assert response.body['code'] == 'ANL300'
        assert response.body['details'] == {'user_id': 'u1', 'resource': 'p9'}
        json.dumps(response.body)

    def test_foreign_hospital_is_forbidden(self, service):
        response = handle_analytics_request(service, 'case_trends', {'hospitalId': 'h2'}, COORDINATOR)
        assert response.status_code == 403

    def test_assigned_hospital_is_allowed(self, service):
        response = handle_analytics_request(service, 'case_trends', {'hospitalId': 'h1'}, COORDINATOR)
        assert response.status_code == 200
        assert len(response.body['data']) == 10

    def test_coordinator_without_assignment_gets_empty_data(self, service):
        response = handle_analytics_request(service, 'case_trends', {}, RequestUser(id='u2', role='coordinator'))
        assert response.status_code == 200
        assert response.body['data'] == []

    def test_inactive_assignment_does_not_count(self, service):
        response = handle_analytics_request(
            service, 'case_trends', {'projectId': 'p9'}, RequestUser(id='u9', role='coordinator')
        )
        assert response.status_code == 200
        assert response.body['data'] == []

    def test_admin_is_not_scoped(self, service):
        response = handle_analytics_request(service, 'case_trends', {'projectId': 'p9'}, ADMIN)
        assert response.status_code == 200
        assert response.body['data'] == []


class TestParseFilters:
    def test_camel_case_params_and_blank_values(self):
        filters = parse_filters({'projectId': 'p1', 'hospitalId': '', 'dateFrom': '2024-01-01', 'days': '30'})
        assert filters.project_id == 'p1'
        assert filters.hospital_id is None
        assert filters.date_from.isoformat() == '2024-01-01'
        assert filters.days == 30

    def test_error_names_bad_fields(self):
        with pytest.raises(InvalidFilterError) as exc_info:
            parse_filters({'dateFrom': 'soon'})
        assert exc_info.value.details['fields'] == ['dateFrom']


class TestAnalyticsService:
    def test_activity_heatmap(self, service):
        cells = {c.hospital_id: c for c in service.get_activity_heatmap()}
        # h1: 40*0.4 + 28*0.3 + 30 = 54.4
        assert (cells['h1'].value, cells['h1'].category) == (54, 'medium')
        # h3: 10*0.4 + 5*0.3 = 5.5
        assert (cells['h3'].value, cells['h3'].category) == (6, 'inactive')

    def test_weekly_velocity_over_default_window(self, service):
        points = service.get_recruitment_velocity(AnalyticsFilters(granularity='week'))
        assert points[-1].cumulative_cases == 30
        assert all(p.date <= TODAY.isoformat() for p in points)

    def test_hospital_level_predictions(self, service):
        predictions = service.get_completion_prediction(AnalyticsFilters(level='hospital'))
        by_id = {p.entity_id: p for p in predictions}

        assert by_id['h1'].predicted_days_remaining == 60
        assert by_id['h1'].predicted_completion_date == '2024-04-30'
        assert by_id['h1'].trend == 'stable'
        assert by_id['h2'].predicted_completion_date == '2024-05-20'
        assert by_id['h3'].predicted_completion_date is None
        assert by_id['h3'].confidence == 'low'

    def test_coordinator_performance_flags_estimates(self, service):
        by_id = {p.coordinator_id: p for p in service.get_coordinator_performance()}

        # one reply after 4h, one unanswered (24h stand-in)
        assert by_id['u1'].response_time == 14
        assert by_id['u1'].response_time_is_estimate is True
        assert by_id['u2'].coordinator_name == 'Unknown'
        assert by_id['u2'].response_time_is_estimate is False

    def test_predictions_extend_history(self, service):
        projected = service.get_predictions('cases', 5)
        assert len(projected) == 5
        assert projected[0].date == '2024-03-01'

    def test_dashboard_overview_collects_all_panels(self, service):
        overview = service.get_dashboard_overview()
        assert set(overview) == {'case_trends', 'activity_heatmap', 'bubble_chart', 'coordinator_performance'}
        assert len(overview['activity_heatmap']) == 3

    def test_dashboard_overview_propagates_failures(self):
        service = AnalyticsService(BrokenRepository(ConnectionError('db down')), today=lambda: TODAY)
        with pytest.raises(ConnectionError):
            service.get_dashboard_overview()
