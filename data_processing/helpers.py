# epicq_analytics/data_processing/helpers.py
#
# Core Data Utilities
# Numeric coercion, rounding and JSON loading helpers shared by the data
# access layer and the analytics core.

import json
import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Pre-compiled regex for finding various "Not Available" strings.
_NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|na|null|nil|<na>|undefined|-|)\s*$'
)


def convert_to_numeric(
    data: Any,
    default_value: Any = np.nan,
    target_type: Optional[Type] = None
) -> Any:
    """
    Coerces export values such as "N/A", "-" or "" to numbers. Accepts a
    Series or a single value and returns the same shape. Unparseable entries
    become `default_value`; `target_type=int` keeps a nullable Int64 column
    when gaps remain.
    """
    if not isinstance(data, pd.Series):
        converted = convert_to_numeric(pd.Series([data], dtype=object), default_value, target_type)
        return converted.iloc[0]

    values = data
    if values.dtype == object or pd.api.types.is_string_dtype(values.dtype):
        values = values.replace(_NA_REGEX_PATTERN, np.nan, regex=True)
    values = pd.to_numeric(values, errors='coerce')
    if not pd.isna(default_value):
        values = values.fillna(default_value)

    if target_type is float:
        return values.astype(float)
    if target_type is int:
        return values.astype(pd.Int64Dtype() if values.isna().any() else int)
    return values


def round_half_up(value: float, ndigits: int = 0) -> Union[int, float]:
    """
    Rounds halves towards positive infinity, the way dashboard figures have
    always been displayed (62.5 -> 63, -2.5 -> -2). Python's built-in round()
    uses banker's rounding and would shift category boundaries.
    """
    if value is None or not math.isfinite(value):
        return 0 if ndigits == 0 else 0.0
    if ndigits == 0:
        return int(math.floor(value + 0.5))
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def safe_average(total: float, count: int) -> int:
    """Rounded mean that short-circuits to 0 for an empty group."""
    if not count:
        return 0
    return round_half_up(total / count)


def robust_json_load(
    file_path: Path,
    context: str = "JSON"
) -> Optional[Union[Dict, List]]:
    """
    Loads JSON data from a file with standardized error handling.

    Returns:
        The loaded JSON data, or None when the file does not exist.

    Raises:
        ValueError: if the file exists but is malformed.
    """
    log_ctx = f"{context}({file_path.name})"
    if not file_path.is_file():
        logger.warning(f"[{log_ctx}] Source file not found at {file_path}.")
        return None
    try:
        with file_path.open('r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"[{log_ctx}] File is malformed or has encoding issues: {e}")
        raise ValueError(f"{log_ctx} is malformed: {e}") from e
