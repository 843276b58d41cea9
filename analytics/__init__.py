# epicq_analytics/analytics/__init__.py
#
# Analytics Package API
# Public interface to the trend, scoring, velocity, geographic and
# prediction computations, and to the service that wires them to a
# repository.

"""
Initializes the analytics package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Trend Aggregation ---
from .trends import compute_trend, project_metric_trend

# --- Heatmap, Bubble & Coordinator Scoring ---
from .scoring import (
    activity_category,
    compute_activity_score,
    coordinator_rating,
    score_coordinator,
)

# --- Recruitment Velocity ---
from .velocity import bucket_key, compute_velocity

# --- Geographic Aggregation ---
from .aggregation import (
    aggregate_by_province,
    build_hospital_progress,
    geographic_distribution,
)

# --- Completion Prediction ---
from .prediction import derive_velocity_stats, predict_completion

# --- Service & Request Boundary ---
from .service import (
    AnalyticsResponse,
    AnalyticsService,
    RequestUser,
    SUPPORTED_METRICS,
    handle_analytics_request,
)


__all__ = [
    # Trends
    "compute_trend",
    "project_metric_trend",

    # Scoring
    "activity_category",
    "compute_activity_score",
    "coordinator_rating",
    "score_coordinator",

    # Velocity
    "bucket_key",
    "compute_velocity",

    # Geography
    "aggregate_by_province",
    "build_hospital_progress",
    "geographic_distribution",

    # Prediction
    "derive_velocity_stats",
    "predict_completion",

    # Service
    "AnalyticsResponse",
    "AnalyticsService",
    "RequestUser",
    "SUPPORTED_METRICS",
    "handle_analytics_request",
]
