# epicq_analytics/analytics/schemas.py
#
# Output models for every analytics metric. Serialized with camelCase keys
# and with unset optional fields omitted, which is the shape the dashboards
# consume.

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ActivityCategory = Literal['high', 'medium', 'low', 'inactive']
Confidence = Literal['high', 'medium', 'low']
Trend = Literal['improving', 'stable', 'declining']
Rating = Literal['Excellent', 'Good', 'Fair', 'Low']


class AnalyticsResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


class TrendPoint(AnalyticsResult):
    date: str
    value: float
    label: Optional[str] = None


class ActivityScore(AnalyticsResult):
    value: int
    category: ActivityCategory


class HeatmapCell(AnalyticsResult):
    hospital_id: str
    hospital_name: str
    province: str
    value: int
    category: ActivityCategory


class BubblePoint(AnalyticsResult):
    x: float
    y: float
    size: int
    label: str = 'Unknown'
    category: str = 'Unknown'


class VelocityPoint(AnalyticsResult):
    date: str
    cases_created: int
    cumulative_cases: int
    velocity: float


class ProvinceSummary(AnalyticsResult):
    province: str
    hospital_count: int
    total_cases: int
    average_progress: int
    average_completion: int
    active_hospitals: int
    total_target_cases: Optional[int] = None
    total_loaded_cases: Optional[int] = None


class GeographicDistribution(AnalyticsResult):
    province: str
    value: float
    count: int


class HospitalProgress(AnalyticsResult):
    hospital_id: str
    hospital_name: str
    province: str
    progress_percentage: float
    cases_created: int
    completion_percentage: float
    status: str
    ethics_submitted: bool
    ethics_approved: bool
    last_activity: Optional[str] = None
    target_cases: Optional[int] = None
    current_period: Optional[int] = None
    total_periods: Optional[int] = None


class VelocityStats(AnalyticsResult):
    avg_velocity: float
    trend: Trend
    confidence: Confidence
    sample_count: int


class Prediction(AnalyticsResult):
    entity_id: Optional[str] = None
    entity_name: str
    current_progress: float
    target_progress: int = 100
    predicted_completion_date: Optional[str] = None
    predicted_days_remaining: Optional[int] = None
    confidence: Confidence
    trend: Trend


class PerformanceMetrics(AnalyticsResult):
    coordinator_id: str
    coordinator_name: str
    cases_created: int
    average_completion: float
    response_time: int
    alert_resolution_rate: float
    score: float
    rating: Rating
    # Set when the figure comes from a documented stand-in rather than data.
    response_time_is_estimate: bool = False
    alert_resolution_rate_is_placeholder: bool = False
