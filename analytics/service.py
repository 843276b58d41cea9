# epicq_analytics/analytics/service.py
#
# Analytics Service & Request Boundary
# AnalyticsService wires the injected repository to the pure computations.
# handle_analytics_request is the thin layer HTTP handlers call: it resolves
# the metric selector, enforces coordinator scope and wraps results in the
# {success, data} envelope.

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in service.py: Settings could not be imported. {e}", exc_info=True)
    raise

from data_processing.enrichment import latest_metrics_by_hospital
from data_processing.models import AnalyticsFilters
from data_processing.repository import AnalyticsRepository

from .aggregation import aggregate_by_province, build_hospital_progress, geographic_distribution
from .errors import AccessDeniedError, AnalyticsError, InvalidFilterError, InvalidMetricError
from .prediction import predict_completion
from .schemas import (
    BubblePoint,
    GeographicDistribution,
    HeatmapCell,
    HospitalProgress,
    PerformanceMetrics,
    Prediction,
    ProvinceSummary,
    TrendPoint,
    VelocityPoint,
)
from .scoring import build_bubble_point, build_heatmap_cell, score_coordinator
from .trends import compute_trend, project_metric_trend
from .velocity import compute_velocity

logger = logging.getLogger(__name__)


class AnalyticsService:
    """
    Read-only analytics over an injected repository. Every method is
    synchronous, idempotent and returns an empty result when there is no data.
    """

    def __init__(self, repository: AnalyticsRepository, today: Optional[Callable[[], date]] = None):
        self.repository = repository
        self._today = today or date.today

    def today(self) -> date:
        return self._today()

    def _with_default_window(self, filters: AnalyticsFilters) -> AnalyticsFilters:
        if filters.date_from or filters.date_to:
            return filters
        return filters.model_copy(update={
            'date_from': self.today() - timedelta(days=settings.defaults.lookback_days)
        })

    def _hospital_names(self, filters: Optional[AnalyticsFilters] = None) -> Dict[str, str]:
        return {h.id: h.name for h in self.repository.list_hospitals(filters) if h.name}

    # --- Trend Aggregator ---

    def get_case_trends(self, filters: Optional[AnalyticsFilters] = None) -> List[TrendPoint]:
        filters = filters or AnalyticsFilters()
        samples = self.repository.list_case_metrics(filters)
        return compute_trend(samples, 'cases', labels=self._hospital_names())

    def get_completion_trends(self, filters: Optional[AnalyticsFilters] = None) -> List[TrendPoint]:
        filters = filters or AnalyticsFilters()
        return compute_trend(self.repository.list_case_metrics(filters), 'completion')

    def get_predictions(self, metric_type: str = 'cases', days: Optional[int] = None) -> List[TrendPoint]:
        today = self.today()
        window = AnalyticsFilters(
            date_from=today - timedelta(days=settings.defaults.lookback_days),
            date_to=today,
        )
        history = (
            self.get_completion_trends(window) if metric_type == 'completion'
            else self.get_case_trends(window)
        )
        return project_metric_trend(history, days or settings.defaults.prediction_days)

    # --- Heatmap/Bubble Scorer ---

    def _hospital_snapshots(self, filters: AnalyticsFilters):
        hospitals = self.repository.list_hospitals(filters)
        hospital_filter = AnalyticsFilters(project_id=filters.project_id)
        progress = {}
        for record in self.repository.list_progress_records(hospital_filter):
            progress.setdefault(record.hospital_id, record)
        latest = latest_metrics_by_hospital(self.repository.list_case_metrics(hospital_filter))
        return hospitals, progress, latest

    def get_activity_heatmap(self, filters: Optional[AnalyticsFilters] = None) -> List[HeatmapCell]:
        hospitals, progress, latest = self._hospital_snapshots(filters or AnalyticsFilters())
        return [build_heatmap_cell(h, progress.get(h.id), latest.get(h.id)) for h in hospitals]

    def get_bubble_chart_data(self, filters: Optional[AnalyticsFilters] = None) -> List[BubblePoint]:
        hospitals, progress, latest = self._hospital_snapshots(filters or AnalyticsFilters())
        return [build_bubble_point(h, progress.get(h.id), latest.get(h.id)) for h in hospitals]

    # --- Coordinator Performance Scorer ---

    def get_coordinator_performance(self, filters: Optional[AnalyticsFilters] = None) -> List[PerformanceMetrics]:
        coordinators = self.repository.list_coordinators(filters or AnalyticsFilters())
        return [score_coordinator(c) for c in coordinators]

    # --- Velocity Calculator ---

    def get_recruitment_velocity(self, filters: Optional[AnalyticsFilters] = None) -> List[VelocityPoint]:
        filters = self._with_default_window(filters or AnalyticsFilters())
        samples = self.repository.list_case_metrics(filters)
        return compute_velocity(samples, filters.granularity)

    # --- Geographic Aggregator ---

    def _enrollment_context(self, filters: AnalyticsFilters):
        records = self.repository.list_progress_records(filters)
        hospital_ids = {r.hospital_id for r in records}
        samples = [
            s for s in self.repository.list_case_metrics(AnalyticsFilters(project_id=filters.project_id))
            if s.hospital_id in hospital_ids
        ]
        hospitals = {h.id: h for h in self.repository.list_hospitals(AnalyticsFilters())}
        periods = self.repository.list_recruitment_periods(AnalyticsFilters(project_id=filters.project_id))
        return records, latest_metrics_by_hospital(samples), hospitals, periods

    def get_province_comparison(self, filters: Optional[AnalyticsFilters] = None) -> List[ProvinceSummary]:
        records, latest, hospitals, periods = self._enrollment_context(filters or AnalyticsFilters())
        return aggregate_by_province(records, latest, hospitals, periods)

    def get_hospital_progress(self, filters: Optional[AnalyticsFilters] = None) -> List[HospitalProgress]:
        records, latest, hospitals, periods = self._enrollment_context(filters or AnalyticsFilters())
        return build_hospital_progress(records, latest, hospitals, periods)

    def get_geographic_distribution(self, metric_type: str = 'cases') -> List[GeographicDistribution]:
        everything = AnalyticsFilters()
        hospitals = self.repository.list_hospitals(everything)
        progress = {}
        for record in self.repository.list_progress_records(everything):
            progress.setdefault(record.hospital_id, record)
        latest = latest_metrics_by_hospital(self.repository.list_case_metrics(everything))
        alerts = self.repository.list_alerts(everything) if metric_type == 'alerts' else []
        return geographic_distribution(hospitals, progress, latest, alerts, metric_type)

    # --- Trend/Prediction Engine ---

    def get_completion_prediction(self, filters: Optional[AnalyticsFilters] = None) -> List[Prediction]:
        filters = filters or AnalyticsFilters()
        today = self.today()
        horizon_days = filters.days or settings.defaults.lookback_days
        records = self.repository.list_progress_records(filters)
        history = self.repository.list_case_metrics(AnalyticsFilters(
            project_id=filters.project_id,
            hospital_id=filters.hospital_id,
            province=filters.province,
            date_from=today - timedelta(days=horizon_days),
        ))
        hospitals = {h.id: h for h in self.repository.list_hospitals(AnalyticsFilters())}
        return predict_completion(filters.level, records, history, horizon_days, hospitals, today)

    # --- Fan-out ---

    def get_dashboard_overview(self, filters: Optional[AnalyticsFilters] = None) -> Dict[str, list]:
        """
        Fetches the independent dashboard panels concurrently. Each panel reads
        disjoint data, so the only effect of the pool is latency; the first
        failure is re-raised unchanged.
        """
        filters = filters or AnalyticsFilters()
        panels = {
            'case_trends': self.get_case_trends,
            'activity_heatmap': self.get_activity_heatmap,
            'bubble_chart': self.get_bubble_chart_data,
            'coordinator_performance': self.get_coordinator_performance,
        }
        with ThreadPoolExecutor(max_workers=settings.defaults.max_workers) as executor:
            futures = {name: executor.submit(fn, filters) for name, fn in panels.items()}
            return {name: future.result() for name, future in futures.items()}


# -----------------------------------------------------------------------------
# REQUEST BOUNDARY
# -----------------------------------------------------------------------------

@dataclass
class RequestUser:
    id: str
    role: str = 'admin'
    name: Optional[str] = None


@dataclass
class AnalyticsResponse:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


def _metric_handlers(service: AnalyticsService, params: Mapping[str, Any]) -> Dict[str, Callable[[AnalyticsFilters], list]]:
    return {
        'case_trends': service.get_case_trends,
        'completion_trends': service.get_completion_trends,
        'activity_heatmap': service.get_activity_heatmap,
        'bubble_chart': service.get_bubble_chart_data,
        'coordinator_performance': service.get_coordinator_performance,
        'hospital_progress': service.get_hospital_progress,
        'recruitment_velocity': service.get_recruitment_velocity,
        'province_comparison': service.get_province_comparison,
        'completion_prediction': service.get_completion_prediction,
        'geographic_distribution': lambda f: service.get_geographic_distribution(
            params.get('distributionType') or 'cases'
        ),
        'predictions': lambda f: service.get_predictions(
            params.get('predictionType') or 'cases', f.days
        ),
    }


SUPPORTED_METRICS = (
    'case_trends', 'completion_trends', 'activity_heatmap', 'bubble_chart',
    'coordinator_performance', 'hospital_progress', 'recruitment_velocity',
    'province_comparison', 'completion_prediction', 'geographic_distribution',
    'predictions',
)


def parse_filters(params: Mapping[str, Any]) -> AnalyticsFilters:
    """Builds filters from query parameters; empty strings count as absent."""
    cleaned = {k: v for k, v in params.items() if v not in (None, '')}
    try:
        return AnalyticsFilters.model_validate(cleaned)
    except ValidationError as e:
        fields = sorted({'.'.join(str(p) for p in err['loc']) for err in e.errors()})
        raise InvalidFilterError(f"Invalid filter parameters: {', '.join(fields)}", details={'fields': fields}) from e


def scope_filters_for_user(
    repository: AnalyticsRepository,
    user: RequestUser,
    filters: AnalyticsFilters
) -> Optional[AnalyticsFilters]:
    """
    Restricts a coordinator to their assigned projects and hospitals.
    Returns None when the coordinator has no active assignment at all.
    """
    if user.role != 'coordinator':
        return filters

    assignments = repository.list_coordinator_assignments(user.id)
    if not assignments:
        return None

    if filters.project_id:
        if not any(a.project_id == filters.project_id for a in assignments):
            raise AccessDeniedError("No access to this project", user_id=user.id, resource=filters.project_id)
        project_id = filters.project_id
    else:
        project_id = assignments[0].project_id

    if filters.hospital_id:
        allowed = any(
            a.project_id == project_id and a.hospital_id in (None, filters.hospital_id)
            for a in assignments
        )
        if not allowed:
            raise AccessDeniedError("No access to this hospital", user_id=user.id, resource=filters.hospital_id)

    return filters.model_copy(update={'project_id': project_id})


def _serialize(result: Any) -> Any:
    if isinstance(result, list):
        return [_serialize(item) for item in result]
    if isinstance(result, dict):
        return {key: _serialize(value) for key, value in result.items()}
    if hasattr(result, 'to_json'):
        return result.to_json()
    return result


def handle_analytics_request(
    service: AnalyticsService,
    metric: Optional[str],
    params: Optional[Mapping[str, Any]] = None,
    user: Optional[RequestUser] = None
) -> AnalyticsResponse:
    """
    Maps one analytics query to a JSON envelope:
    200 {success, data, metric}, 400 bad metric/filters, 403 out of scope
    (4xx bodies carry {error, code, details} from the raised AnalyticsError),
    500 anything else (store failures included).
    """
    params = params or {}
    user = user or RequestUser(id='anonymous')
    try:
        if not metric:
            raise InvalidMetricError('Parameter "metric" is required')
        handlers = _metric_handlers(service, params)
        if metric not in handlers:
            raise InvalidMetricError(f"Unsupported metric: {metric}", metric=metric)

        filters = scope_filters_for_user(service.repository, user, parse_filters(params))
        if filters is None:
            return AnalyticsResponse(200, {'success': True, 'data': [], 'metric': metric})

        data = handlers[metric](filters)
        return AnalyticsResponse(200, {'success': True, 'data': _serialize(data), 'metric': metric})

    except AnalyticsError as e:
        if e.status_code >= 500:
            logger.error(f"Analytics request '{metric}' failed: {e}", exc_info=True)
            return AnalyticsResponse(e.status_code, {'success': False, 'error': 'Internal server error'})
        payload = e.to_dict()
        logger.warning(f"Rejected analytics request '{metric}' for user {user.id}: {payload}")
        return AnalyticsResponse(e.status_code, {
            'success': False,
            'error': payload['message'],
            'code': payload['error_code'],
            'details': payload['details'],
        })
    except Exception as e:
        logger.error(f"Unexpected error serving analytics metric '{metric}': {e}", exc_info=True)
        return AnalyticsResponse(500, {'success': False, 'error': 'Internal server error'})
