# epicq_analytics/data_processing/loaders.py
#
# Unified Data Loading Engine
# File-backed data access adapter. Raw CSV/JSON exports of the study store are
# cleaned, clamped and validated here so the analytics core can assume
# well-formed records.

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

try:
    from config.settings import settings
    from .errors import DataSourceError
    from .helpers import robust_json_load
    from .models import (
        AlertRecord,
        CaseMetricSample,
        CoordinatorActivity,
        CoordinatorAssignment,
        HospitalSummary,
        ProgressRecord,
        RecruitmentPeriod,
    )
    from .pipeline import DataPipeline
    from .repository import InMemoryRepository
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in loaders.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


class DataLoader:
    """
    Loads raw exports from a directory and applies the standard cleaning
    pipeline. Missing optional files yield an empty DataFrame; malformed
    files raise DataSourceError so the failure reaches the caller intact.
    """
    def __init__(self, data_source_dir: Path):
        self.base_dir = Path(data_source_dir)
        if not self.base_dir.exists():
            logger.warning(f"Data source directory not found: {self.base_dir}.")

    def _get_path(self, file_path: Path) -> Path:
        file_path = Path(file_path)
        return self.base_dir / file_path if not file_path.is_absolute() else file_path

    def load_csv(self, file_path: Path, date_cols: Optional[list] = None) -> pd.DataFrame:
        full_path = self._get_path(file_path)
        log_ctx = f"CSV({full_path.name})"
        logger.debug(f"[{log_ctx}] Attempting to load data from {full_path}")

        if not full_path.exists():
            logger.warning(f"[{log_ctx}] Source file not found. Returning empty DataFrame.")
            return pd.DataFrame()

        try:
            df = pd.read_csv(full_path, low_memory=False)
        except pd.errors.EmptyDataError:
            logger.warning(f"[{log_ctx}] File is empty.")
            return pd.DataFrame()
        except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
            logger.critical(f"[{log_ctx}] CRITICAL ERROR reading file: {e}", exc_info=True)
            raise DataSourceError(f"Could not read {full_path.name}: {e}", source=str(full_path)) from e

        pipeline = DataPipeline(df, source=log_ctx).clean_column_names()
        if date_cols:
            pipeline.convert_date_columns(date_cols)
        df_processed = pipeline.get_df()
        logger.info(f"[{log_ctx}] Successfully loaded and cleaned {len(df_processed)} records.")
        return df_processed

    def load_json(self, file_path: Path) -> List[Dict[str, Any]]:
        full_path = self._get_path(file_path)
        try:
            payload = robust_json_load(full_path, context="JSON")
        except ValueError as e:
            raise DataSourceError(str(e), source=str(full_path)) from e
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise DataSourceError(f"{full_path.name} must contain a JSON array.", source=str(full_path))
        return payload


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as dicts with NaN/NaT replaced by None."""
    if df.empty:
        return []
    df = df.copy()
    # Identifiers may be numeric in the export; entity ids are always strings.
    for col in df.columns:
        if col == 'id' or col.endswith('_id'):
            df[col] = df[col].map(lambda v: None if pd.isna(v) else str(v))
    return df.astype(object).where(df.notna(), None).to_dict('records')


def _parse(model, rows: List[Dict[str, Any]], source: str) -> list:
    parsed = []
    for i, row in enumerate(rows):
        try:
            parsed.append(model.model_validate(row))
        except ValueError as e:
            raise DataSourceError(f"Invalid {model.__name__} at row {i}: {e}", source=source) from e
    return parsed


class FileAnalyticsRepository(InMemoryRepository):
    """
    Reads the study store's exports once at construction:

    - hospital_progress.csv, case_metrics.csv, hospitals.csv, alerts.csv,
      project_coordinators.csv
    - coordinators.json (with nested communications and latest metric)
    - recruitment_periods.json (with nested case_load_statistics)

    Percentages are clamped into [0, 100]; a negative `cases_created` is a
    data-source error, not a domain state.
    """
    def __init__(self, data_source_dir: Optional[Path] = None, config=None):
        cfg = config or settings
        loader = DataLoader(data_source_dir or cfg.directories.data_sources)

        super().__init__(
            progress_records=self._load_progress(loader, cfg.progress_records_file),
            case_metrics=self._load_case_metrics(loader, cfg.case_metrics_file),
            hospitals=self._load_hospitals(loader, cfg.hospitals_file),
            coordinators=_parse(CoordinatorActivity, loader.load_json(cfg.coordinators_file), cfg.coordinators_file),
            recruitment_periods=_parse(RecruitmentPeriod, loader.load_json(cfg.recruitment_periods_file), cfg.recruitment_periods_file),
            alerts=self._load_alerts(loader, cfg.alerts_file),
            assignments=self._load_assignments(loader, cfg.assignments_file),
        )
        self._backfill_sample_provinces()
        logger.info(
            f"File repository ready: {len(self.progress_records)} progress records, "
            f"{len(self.case_metrics)} case metric samples, {len(self.hospitals)} hospitals."
        )

    @staticmethod
    def _load_progress(loader: DataLoader, file_name: str) -> List[ProgressRecord]:
        df = loader.load_csv(Path(file_name), date_cols=['updated_at'])
        if df.empty:
            return []
        df = (
            DataPipeline(df, source=file_name)
            .drop_incomplete(['hospital_id'])
            .clip_percentages(['progress_percentage'])
            .standardize_missing_values({'ethics_submitted': False, 'ethics_approved': False})
            .get_df()
        )
        return _parse(ProgressRecord, _records(df), file_name)

    @staticmethod
    def _load_case_metrics(loader: DataLoader, file_name: str) -> List[CaseMetricSample]:
        df = loader.load_csv(Path(file_name), date_cols=['recorded_date'])
        if df.empty:
            return []
        df = (
            DataPipeline(df, source=file_name)
            .drop_incomplete(['hospital_id', 'recorded_date'])
            .require_non_negative(['cases_created'])
            .clip_percentages(['completion_percentage'])
            .get_df()
        )
        # mergesort is stable: same-day samples keep file order.
        df = df.sort_values('recorded_date', kind='mergesort')
        return _parse(CaseMetricSample, _records(df), file_name)

    @staticmethod
    def _load_hospitals(loader: DataLoader, file_name: str) -> List[HospitalSummary]:
        df = loader.load_csv(Path(file_name))
        if df.empty:
            return []
        df = DataPipeline(df, source=file_name).drop_incomplete(['id']).get_df()
        rows = _records(df)
        for row in rows:
            # project_ids is exported as a ';'-separated list.
            raw = row.get('project_ids')
            row['project_ids'] = [p.strip() for p in str(raw).split(';') if p.strip()] if raw else []
        return _parse(HospitalSummary, rows, file_name)

    @staticmethod
    def _load_alerts(loader: DataLoader, file_name: str) -> List[AlertRecord]:
        df = loader.load_csv(Path(file_name), date_cols=['created_at'])
        if df.empty:
            return []
        df = (
            DataPipeline(df, source=file_name)
            .drop_incomplete(['hospital_id'])
            .standardize_missing_values({'is_resolved': False})
            .get_df()
        )
        return _parse(AlertRecord, _records(df), file_name)

    @staticmethod
    def _load_assignments(loader: DataLoader, file_name: str) -> List[CoordinatorAssignment]:
        df = loader.load_csv(Path(file_name))
        if df.empty:
            return []
        df = (
            DataPipeline(df, source=file_name)
            .drop_incomplete(['user_id', 'project_id'])
            .standardize_missing_values({'is_active': True})
            .get_df()
        )
        return _parse(CoordinatorAssignment, _records(df), file_name)

    def _backfill_sample_provinces(self) -> None:
        """
        Samples exported without a province get the province recorded on the
        hospital's progress record, falling back to the hospital reference row.
        """
        if all(s.province for s in self.case_metrics):
            return
        provinces = {h.id: h.province for h in self.hospitals if h.province}
        provinces.update({p.hospital_id: p.province for p in self.progress_records if p.province})
        self.case_metrics = [
            s if s.province else s.model_copy(update={'province': provinces.get(s.hospital_id)})
            for s in self.case_metrics
        ]
