# epicq_analytics/data_processing/__init__.py
#
# Data Processing Package API
# Entity models, the read-only repository interface and the file-backed data
# access adapter that feeds the analytics core.

"""
Initializes the data_processing package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Entity Models & Filters ---
from .models import (
    AlertRecord,
    AnalyticsFilters,
    CaseLoadStatistic,
    CaseMetricSample,
    Communication,
    CoordinatorActivity,
    CoordinatorAssignment,
    HospitalSummary,
    ProgressRecord,
    RecruitmentPeriod,
)

# --- Repository Interface ---
from .repository import AnalyticsRepository, InMemoryRepository

# --- File-backed Data Access Adapter ---
from .loaders import DataLoader, FileAnalyticsRepository

# --- Data Preparation ---
from .pipeline import DataPipeline

from .errors import AnalyticsError, DataSourceError


__all__ = [
    # --- Models ---
    "AlertRecord",
    "AnalyticsFilters",
    "CaseLoadStatistic",
    "CaseMetricSample",
    "Communication",
    "CoordinatorActivity",
    "CoordinatorAssignment",
    "HospitalSummary",
    "ProgressRecord",
    "RecruitmentPeriod",

    # --- Repositories ---
    "AnalyticsRepository",
    "InMemoryRepository",
    "DataLoader",
    "FileAnalyticsRepository",

    # --- Preparation ---
    "DataPipeline",

    # --- Errors ---
    "AnalyticsError",
    "DataSourceError",
]
