# referral_tracker/data_processing/helpers.py
# Fluent DataPipeline and shared utilities for the referral snapshot.

"""
A collection of utility functions and a fluent DataPipeline class for
normalizing raw record-store rows into analytics-ready DataFrames.
"""
import hashlib
import json
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# --- Standalone Utility Functions ---

# Placeholder strings the record store and hand-edited snapshots use for "no value".
MISSING_TOKEN_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|nat|<na>|null|nil|na|undefined|-|)\s*$'
)


def convert_to_numeric(series: pd.Series, default_value: Any = np.nan, target_type: Optional[Type] = None) -> pd.Series:
    """Coerces a column to numbers, treating placeholder strings as missing."""
    if pd.api.types.is_object_dtype(series.dtype):
        series = series.replace(MISSING_TOKEN_PATTERN, np.nan, regex=True)
    numbers = pd.to_numeric(series, errors='coerce')
    if not pd.isna(default_value):
        numbers = numbers.fillna(default_value)
    if target_type is int:
        return numbers.astype(pd.Int64Dtype() if numbers.isna().any() else int)
    if target_type is float:
        return numbers.astype(float)
    return numbers


def robust_json_load(file_path: Union[str, Path]) -> Optional[Union[Dict, List]]:
    """Reads a UTF-8 JSON file; logs and returns None when it is absent or unreadable."""
    path = Path(file_path)
    if not path.is_file():
        logger.error(f"No JSON file at {path.resolve()}")
        return None
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Could not parse {path.name} as JSON: {e}")
        return None


def _stable_cell_repr(value: Any) -> str:
    if isinstance(value, (list, dict)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def hash_dataframe(df: Optional[pd.DataFrame]) -> Optional[str]:
    """
    Creates a consistent SHA256 hash for a DataFrame, suitable for caching.

    Referral snapshots carry list/dict columns (document_status,
    workflow_history) which pandas cannot hash natively, so object columns are
    hashed through a sorted JSON representation.
    """
    if df is None:
        return None
    if df.empty:
        return hashlib.sha256(("empty:" + ",".join(sorted(map(str, df.columns)))).encode()).hexdigest()

    ordered = df[sorted(df.columns, key=str)].copy()
    for col in ordered.columns:
        if pd.api.types.is_object_dtype(ordered[col].dtype):
            ordered[col] = ordered[col].map(_stable_cell_repr)
    return hashlib.sha256(pd.util.hash_pandas_object(ordered, index=True).values).hexdigest()


def parse_timestamp(value: Any) -> pd.Timestamp:
    """Parses a single date/datetime into a timezone-naive UTC Timestamp (NaT on failure)."""
    ts = pd.to_datetime(value, errors='coerce', utc=True)
    if pd.isna(ts):
        return pd.NaT
    return ts.tz_convert(None)


def to_naive_utc(values: pd.Series, errors: str = 'coerce') -> pd.Series:
    """
    Parses a column of dates or ISO strings (with or without offsets) into
    timezone-naive UTC. Each value is parsed on its own, so a column mixing
    whole-second and millisecond stamps keeps every row.
    """
    return pd.to_datetime(values, errors=errors, utc=True, format='mixed').dt.tz_convert(None)


class DataPipeline:
    """
    A fluent interface for applying a sequence of data processing operations.

    Usage:
        processed_df = (DataPipeline(raw_df)
                        .clean_column_names()
                        .convert_date_columns(['created_at'])
                        .standardize_missing_values({'patient_name': ''})
                        .get_dataframe())
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError(f"DataPipeline expects a pandas DataFrame, got {type(df).__name__}.")
        self.df = df.copy()

    def get_dataframe(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self.df

    def clean_column_names(self) -> 'DataPipeline':
        """Snake-cases column names; blanks become `col_<i>` and repeats get `_<n>` suffixes."""
        if len(self.df.columns) == 0:
            return self

        names = (self.df.columns.astype(str).str.strip().str.lower()
                 .str.replace(r'\W+', '_', regex=True)
                 .str.replace(r'_{2,}', '_', regex=True).str.strip('_'))
        names = [name or f"col_{i}" for i, name in enumerate(names)]

        totals = Counter(names)
        seen: Counter = Counter()
        unique_names = []
        for name in names:
            if totals[name] > 1:
                unique_names.append(f"{name}_{seen[name]}")
                seen[name] += 1
            else:
                unique_names.append(name)
        self.df.columns = unique_names
        return self

    def ensure_columns(self, defaults: Dict[str, Any]) -> 'DataPipeline':
        """Adds any missing column, filled with its default."""
        for col, default in defaults.items():
            if col not in self.df.columns:
                self.df[col] = [self._copy_default(default) for _ in range(len(self.df))]
        return self

    def standardize_missing_values(self, default_values: Dict[str, Any]) -> 'DataPipeline':
        """
        Standardizes "Not Available" formats to NaN and fills with the given
        defaults, inferring type from the default value.
        """
        for col, default in default_values.items():
            if col not in self.df.columns:
                continue
            if isinstance(default, bool):
                self.df[col] = self.df[col].map(lambda v: self._coerce_bool(v, default)).astype(bool)
            elif isinstance(default, (int, float, np.number)):
                target_type = int if isinstance(default, int) else float
                self.df[col] = convert_to_numeric(self.df[col], default_value=default, target_type=target_type)
            elif isinstance(default, (list, dict)):
                kind = type(default)
                self.df[col] = self.df[col].map(lambda v: v if isinstance(v, kind) else self._copy_default(default))
            else:
                series = self.df[col].astype(object).replace(MISSING_TOKEN_PATTERN, np.nan, regex=True)
                self.df[col] = series.fillna(str(default)).astype(str).str.strip()
        return self

    def convert_date_columns(self, date_columns: List[str], errors: str = 'coerce') -> 'DataPipeline':
        """Converts columns to timezone-naive UTC datetimes, coercing errors to NaT."""
        for col in date_columns:
            if col in self.df.columns:
                self.df[col] = to_naive_utc(self.df[col], errors=errors)
        return self

    @staticmethod
    def _coerce_bool(value: Any, default: bool) -> bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        if isinstance(value, str):
            return value.strip().lower() in ('true', 't', '1', 'yes')
        if value is None or (isinstance(value, float) and np.isnan(value)):
            return default
        return bool(value)

    @staticmethod
    def _copy_default(default: Any) -> Any:
        return default.copy() if isinstance(default, (list, dict)) else default
