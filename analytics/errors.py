# epicq_analytics/analytics/errors.py
#
# Request-level errors raised at the analytics boundary. Pure computations
# never raise these; they degrade to documented defaults instead.

from typing import Any, Dict, Optional

from data_processing.errors import AnalyticsError, DataSourceError


class InvalidMetricError(AnalyticsError):
    """Missing or unsupported `metric` selector."""

    status_code = 400

    def __init__(self, message: str, metric: Optional[str] = None):
        super().__init__(message, error_code="ANL200", details={'metric': metric})


class InvalidFilterError(AnalyticsError):
    """A filter parameter could not be parsed (e.g. a malformed date)."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="ANL201", details=details)


class AccessDeniedError(AnalyticsError):
    """A coordinator asked for data outside their assigned scope."""

    status_code = 403

    def __init__(self, message: str, user_id: Optional[str] = None, resource: Optional[str] = None):
        super().__init__(
            message,
            error_code="ANL300",
            details={'user_id': user_id, 'resource': resource}
        )


__all__ = [
    "AnalyticsError",
    "DataSourceError",
    "InvalidMetricError",
    "InvalidFilterError",
    "AccessDeniedError",
]
