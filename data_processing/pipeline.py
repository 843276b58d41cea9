# epicq_analytics/data_processing/pipeline.py
#
# Fluent Data Processing Pipeline
# A chainable class applying the cleaning steps every raw source goes
# through before it is turned into entity records.

import logging
from collections import Counter
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from .errors import DataSourceError
from .helpers import _NA_REGEX_PATTERN, convert_to_numeric

logger = logging.getLogger(__name__)


class DataPipeline:
    """
    A fluent interface for applying a sequence of data processing operations.
    Enables expressive, readable, and chainable cleaning pipelines.
    """
    def __init__(self, df: pd.DataFrame, source: str = "frame"):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self._df = df.copy()
        self._source = source

    def get_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self._df

    def clean_column_names(self) -> 'DataPipeline':
        """Standardizes column names to snake_case, de-duplicating collisions."""
        if self._df.empty and len(self._df.columns) == 0:
            return self
        new_cols = (
            self._df.columns.astype(str)
            .str.replace(r'(?<=[a-z0-9])([A-Z])', r'_\1', regex=True)
            .str.lower().str.strip()
            .str.replace(r'[^0-9a-z_]+', '_', regex=True)
            .str.replace(r'_{2,}', '_', regex=True).str.strip('_')
        )
        new_cols = [f"unnamed_col_{i}" if not name else name for i, name in enumerate(new_cols)]

        counts = Counter(new_cols)
        if max(counts.values(), default=0) > 1:
            seen = Counter()
            final_cols = []
            for col_name in new_cols:
                if counts[col_name] > 1:
                    final_cols.append(f"{col_name}_{seen[col_name]}")
                    seen[col_name] += 1
                else:
                    final_cols.append(col_name)
            self._df.columns = final_cols
        else:
            self._df.columns = new_cols
        return self

    def standardize_missing_values(self, column_defaults: Dict[str, Any]) -> 'DataPipeline':
        """Replaces various 'Not Available' formats and fills with provided defaults."""
        for col, default_val in (column_defaults or {}).items():
            if col not in self._df.columns:
                continue
            series = self._df[col]
            if isinstance(default_val, bool):
                self._df[col] = series.map(_to_bool).fillna(default_val).astype(bool)
            elif isinstance(default_val, (int, float, np.number)):
                target_type = int if isinstance(default_val, int) else float
                self._df[col] = convert_to_numeric(series, default_value=default_val, target_type=target_type)
            else:
                series_obj = series.astype(object).replace(_NA_REGEX_PATTERN, np.nan, regex=True)
                self._df[col] = series_obj.fillna(str(default_val))
        return self

    def convert_date_columns(self, date_columns: List[str], errors: str = 'coerce') -> 'DataPipeline':
        """Converts specified columns to datetime objects."""
        for col in date_columns or []:
            if col in self._df.columns:
                self._df[col] = pd.to_datetime(self._df[col], errors=errors)
            else:
                logger.debug(f"Date conversion skipped: Column '{col}' not found.")
        return self

    def clip_percentages(self, columns: List[str]) -> 'DataPipeline':
        """Clamps percentage columns into [0, 100], logging how many values moved."""
        for col in columns:
            if col not in self._df.columns:
                continue
            values = convert_to_numeric(self._df[col], default_value=0.0, target_type=float)
            out_of_range = int(((values < 0) | (values > 100)).sum())
            if out_of_range:
                logger.warning(f"[{self._source}] Clamped {out_of_range} out-of-range values in '{col}'.")
            self._df[col] = values.clip(lower=0, upper=100)
        return self

    def require_non_negative(self, columns: List[str]) -> 'DataPipeline':
        """Rejects the source outright when a count column holds negative values."""
        for col in columns:
            if col not in self._df.columns:
                continue
            values = convert_to_numeric(self._df[col], default_value=0, target_type=int)
            negatives = self._df.index[values < 0].tolist()
            if negatives:
                raise DataSourceError(
                    f"Column '{col}' contains negative values.",
                    source=self._source,
                    details={'rows': negatives[:10]}
                )
            self._df[col] = values
        return self

    def drop_incomplete(self, required: List[str]) -> 'DataPipeline':
        """Drops rows missing any of the required identifying columns."""
        present = [c for c in required if c in self._df.columns]
        before = len(self._df)
        self._df = self._df.dropna(subset=present)
        dropped = before - len(self._df)
        if dropped:
            logger.warning(f"[{self._source}] Dropped {dropped} rows missing {present}.")
        return self


def _to_bool(value: Any) -> Any:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "t", "yes", "y", "1"):
            return True
        if lowered in ("false", "f", "no", "n", "0"):
            return False
        return np.nan
    if isinstance(value, (int, float, np.number)) and not pd.isna(value):
        return bool(value)
    return np.nan
