# epicq_analytics/data_processing/errors.py
#
# Base exception hierarchy shared by the data access layer and the analytics
# core. Each error carries an HTTP-style status code so the request boundary
# can map it without inspecting messages.

from datetime import datetime
from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base exception for all analytics errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str = "ANL000",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': str(self),
            'details': self.details,
            'timestamp': self.timestamp.isoformat()
        }


class DataSourceError(AnalyticsError):
    """The underlying store returned data that violates its own contract."""

    status_code = 500

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            error_code="ANL100",
            details={'source': source, **(details or {})}
        )
