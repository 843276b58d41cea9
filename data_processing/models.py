# epicq_analytics/data_processing/models.py
#
# Typed, read-only entity models handed to the analytics core by the data
# access layer. Field names are snake_case; camelCase aliases are accepted so
# records coming straight from the relational store's JSON can be validated.

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class EntityModel(BaseModel):
    """Base for all entity records: immutable, alias-tolerant."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra='ignore'
    )


def _as_date(value):
    """Collapses datetimes (and pandas Timestamps) to calendar dates."""
    if isinstance(value, datetime):
        return value.date()
    return value


class HospitalSummary(EntityModel):
    id: str
    name: Optional[str] = None
    province: Optional[str] = None
    status: Optional[str] = None
    project_ids: List[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status in ("active", "active_recruiting")


class ProgressRecord(EntityModel):
    """One record per hospital per project enrollment."""
    hospital_id: str
    project_id: Optional[str] = None
    province: Optional[str] = None
    progress_percentage: float = 0.0
    status: Optional[str] = None
    ethics_submitted: bool = False
    ethics_approved: bool = False
    required_periods: Optional[int] = None
    current_period_number: Optional[int] = None
    updated_at: Optional[datetime] = None


class CaseMetricSample(EntityModel):
    """A single recording event for a hospital. Immutable once recorded."""
    hospital_id: str
    recorded_date: date
    cases_created: int = 0
    completion_percentage: float = 0.0
    project_id: Optional[str] = None
    # Province as stored when the sample was recorded, not a live join.
    province: Optional[str] = None

    @field_validator('recorded_date', mode='before')
    @classmethod
    def coerce_recorded_date(cls, value):
        return _as_date(value)


class CaseLoadStatistic(EntityModel):
    cases_expected: int = 0
    cases_loaded: int = 0
    updated_at: Optional[datetime] = None


class RecruitmentPeriod(EntityModel):
    hospital_id: str
    project_id: Optional[str] = None
    period_number: int
    case_load_statistics: List[CaseLoadStatistic] = Field(default_factory=list)


class Communication(EntityModel):
    timestamp: datetime
    responded_at: Optional[datetime] = None


class AlertRecord(EntityModel):
    hospital_id: str
    project_id: Optional[str] = None
    is_resolved: bool = False
    created_at: Optional[datetime] = None


class CoordinatorActivity(EntityModel):
    coordinator_id: str
    coordinator_name: Optional[str] = None
    hospital_id: Optional[str] = None
    communications: List[Communication] = Field(default_factory=list)
    latest_case_metric: Optional[CaseMetricSample] = None
    # Empty when alerts are not linked to the coordinator's hospital.
    alerts: List[AlertRecord] = Field(default_factory=list)


class CoordinatorAssignment(EntityModel):
    user_id: str
    project_id: str
    hospital_id: Optional[str] = None
    is_active: bool = True


class AnalyticsFilters(EntityModel):
    """Query filter shared by every analytics metric."""
    model_config = ConfigDict(frozen=False)

    project_id: Optional[str] = None
    hospital_id: Optional[str] = None
    province: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    granularity: Optional[str] = None
    level: Optional[str] = None
    days: Optional[int] = Field(default=None, ge=1)

    @field_validator('date_from', 'date_to', mode='before')
    @classmethod
    def coerce_dates(cls, value):
        return _as_date(value)
