# epicq_analytics/data_processing/repository.py
#
# Read-only query surface over the study store. The analytics core only ever
# talks to an AnalyticsRepository handed to it, never to a shared client, so
# any persistence technology (or a test fake) can stand behind it.

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .models import (
    AlertRecord,
    AnalyticsFilters,
    CaseMetricSample,
    CoordinatorActivity,
    CoordinatorAssignment,
    HospitalSummary,
    ProgressRecord,
    RecruitmentPeriod,
)

logger = logging.getLogger(__name__)


class AnalyticsRepository(ABC):
    """Abstract read-only repository consumed by the analytics service."""

    @abstractmethod
    def list_progress_records(self, filters: Optional[AnalyticsFilters] = None) -> List[ProgressRecord]:
        ...

    @abstractmethod
    def list_case_metrics(self, filters: Optional[AnalyticsFilters] = None) -> List[CaseMetricSample]:
        """Samples ordered ascending by recorded_date; ties keep source order."""

    @abstractmethod
    def list_hospitals(self, filters: Optional[AnalyticsFilters] = None) -> List[HospitalSummary]:
        ...

    @abstractmethod
    def list_coordinators(self, filters: Optional[AnalyticsFilters] = None) -> List[CoordinatorActivity]:
        """Coordinators with communications restricted to the filter's date range."""

    @abstractmethod
    def list_recruitment_periods(self, filters: Optional[AnalyticsFilters] = None) -> List[RecruitmentPeriod]:
        ...

    @abstractmethod
    def list_alerts(self, filters: Optional[AnalyticsFilters] = None) -> List[AlertRecord]:
        ...

    @abstractmethod
    def list_coordinator_assignments(self, user_id: str) -> List[CoordinatorAssignment]:
        """Active project/hospital assignments for one coordinator user."""


class InMemoryRepository(AnalyticsRepository):
    """
    Repository over plain entity lists. Filtering mirrors what the relational
    store does: equality on ids, province as stored on each record, inclusive
    date bounds on recorded dates.
    """

    def __init__(
        self,
        progress_records: Iterable[ProgressRecord] = (),
        case_metrics: Iterable[CaseMetricSample] = (),
        hospitals: Iterable[HospitalSummary] = (),
        coordinators: Iterable[CoordinatorActivity] = (),
        recruitment_periods: Iterable[RecruitmentPeriod] = (),
        alerts: Iterable[AlertRecord] = (),
        assignments: Iterable[CoordinatorAssignment] = (),
    ):
        self.progress_records = list(progress_records)
        self.case_metrics = list(case_metrics)
        self.hospitals = list(hospitals)
        self.coordinators = list(coordinators)
        self.recruitment_periods = list(recruitment_periods)
        self.alerts = list(alerts)
        self.assignments = list(assignments)

    def _project_hospital_ids(self, project_id: str) -> set:
        ids = {h.id for h in self.hospitals if project_id in h.project_ids}
        ids.update(p.hospital_id for p in self.progress_records if p.project_id == project_id)
        return ids

    def list_progress_records(self, filters: Optional[AnalyticsFilters] = None) -> List[ProgressRecord]:
        f = filters or AnalyticsFilters()
        records = self.progress_records
        if f.project_id:
            records = [r for r in records if r.project_id == f.project_id]
        if f.hospital_id:
            records = [r for r in records if r.hospital_id == f.hospital_id]
        if f.province:
            records = [r for r in records if r.province == f.province]
        return list(records)

    def list_case_metrics(self, filters: Optional[AnalyticsFilters] = None) -> List[CaseMetricSample]:
        f = filters or AnalyticsFilters()
        samples = self.case_metrics
        if f.project_id:
            project_hospitals = self._project_hospital_ids(f.project_id)
            samples = [
                s for s in samples
                if s.project_id == f.project_id or (s.project_id is None and s.hospital_id in project_hospitals)
            ]
        if f.hospital_id:
            samples = [s for s in samples if s.hospital_id == f.hospital_id]
        if f.province:
            fallback = {h.id: h.province for h in self.hospitals}
            fallback.update({p.hospital_id: p.province for p in self.progress_records if p.province})
            samples = [s for s in samples if (s.province or fallback.get(s.hospital_id)) == f.province]
        if f.date_from:
            samples = [s for s in samples if s.recorded_date >= f.date_from]
        if f.date_to:
            samples = [s for s in samples if s.recorded_date <= f.date_to]
        # sorted() is stable, so same-day samples keep insertion order.
        return sorted(samples, key=lambda s: s.recorded_date)

    def list_hospitals(self, filters: Optional[AnalyticsFilters] = None) -> List[HospitalSummary]:
        f = filters or AnalyticsFilters()
        hospitals = self.hospitals
        if f.project_id:
            project_hospitals = self._project_hospital_ids(f.project_id)
            hospitals = [h for h in hospitals if h.id in project_hospitals]
        if f.hospital_id:
            hospitals = [h for h in hospitals if h.id == f.hospital_id]
        if f.province:
            hospitals = [h for h in hospitals if h.province == f.province]
        return list(hospitals)

    def list_coordinators(self, filters: Optional[AnalyticsFilters] = None) -> List[CoordinatorActivity]:
        f = filters or AnalyticsFilters()
        if not (f.date_from or f.date_to):
            return list(self.coordinators)
        scoped = []
        for coordinator in self.coordinators:
            communications = [
                c for c in coordinator.communications
                if (f.date_from is None or c.timestamp.date() >= f.date_from)
                and (f.date_to is None or c.timestamp.date() <= f.date_to)
            ]
            scoped.append(coordinator.model_copy(update={'communications': communications}))
        return scoped

    def list_recruitment_periods(self, filters: Optional[AnalyticsFilters] = None) -> List[RecruitmentPeriod]:
        f = filters or AnalyticsFilters()
        periods = self.recruitment_periods
        if f.project_id:
            periods = [p for p in periods if p.project_id == f.project_id]
        if f.hospital_id:
            periods = [p for p in periods if p.hospital_id == f.hospital_id]
        return list(periods)

    def list_alerts(self, filters: Optional[AnalyticsFilters] = None) -> List[AlertRecord]:
        f = filters or AnalyticsFilters()
        alerts = self.alerts
        if f.project_id:
            alerts = [a for a in alerts if a.project_id in (None, f.project_id)]
        if f.hospital_id:
            alerts = [a for a in alerts if a.hospital_id == f.hospital_id]
        return list(alerts)

    def list_coordinator_assignments(self, user_id: str) -> List[CoordinatorAssignment]:
        return [a for a in self.assignments if a.user_id == user_id and a.is_active]
