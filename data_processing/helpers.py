# clinic_records/data_processing/helpers.py
# SHARED UTILITIES & FLUENT SNAPSHOT PIPELINE

"""
Utility functions shared by the adapters, loaders and caching layer, plus a
fluent DataPipeline for cleaning tabular record snapshots (CSV exports of the
roster or an event table) before they are handed to the adapters.
"""
import hashlib
import json
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# --- Standalone Utility Functions ---

NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|nat|<na>|null|nil|na|undefined|invalid date|)\s*$'
)


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT/pd.NA and the textual "not available" markers."""
    if value is None:
        return True
    if isinstance(value, str):
        return bool(NA_REGEX_PATTERN.match(value))
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # Containers make pd.isna return an array; they are values, not gaps.
        return False


def convert_to_numeric(data_input: Any, default_value: Any = np.nan) -> Any:
    """
    Converts a scalar or Series to numbers, treating the usual "Not Available"
    strings as missing. Used for amounts and fee columns, which arrive as
    numbers, numeric strings or DECIMAL-as-string from the API.
    """
    is_series = isinstance(data_input, pd.Series)
    series = data_input if is_series else pd.Series([data_input], dtype=object)

    if pd.api.types.is_object_dtype(series.dtype):
        series = series.replace(NA_REGEX_PATTERN, np.nan, regex=True)

    numeric_series = pd.to_numeric(series, errors='coerce')
    if not pd.isna(default_value):
        numeric_series = numeric_series.fillna(default_value)

    return numeric_series if is_series else (numeric_series.iloc[0] if not numeric_series.empty else default_value)


def robust_json_load(file_path: Union[str, Path]) -> Optional[Union[Dict, List]]:
    """Loads JSON data from a file with robust error handling and UTF-8 encoding."""
    path_obj = Path(file_path)
    if not path_obj.is_file():
        logger.error(f"JSON load failed: File not found at {path_obj.resolve()}")
        return None
    try:
        with path_obj.open('r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Error decoding JSON from {path_obj.resolve()}: {e}")
        return None
    except OSError as e:
        logger.error(f"Could not read {path_obj.resolve()}: {e}", exc_info=True)
        return None


def hash_dataframe(df: Optional[pd.DataFrame]) -> Optional[str]:
    """Creates a consistent SHA256 hash for a DataFrame, suitable for caching."""
    if df is None:
        return None
    if not isinstance(df, pd.DataFrame):
        logger.warning(f"hash_dataframe expected a DataFrame, got {type(df)}. Hashing string representation.")
        return hashlib.sha256(str(df).encode('utf-8')).hexdigest()
    if df.empty:
        col_string = '_'.join(sorted(map(str, df.columns)))
        return hashlib.sha256(f"empty_df:{col_string}".encode()).hexdigest()
    try:
        df_sorted = df.reindex(sorted(df.columns, key=str), axis=1)
        return hashlib.sha256(pd.util.hash_pandas_object(df_sorted, index=True).values).hexdigest()
    except TypeError as e:
        # Raw API rows can carry nested dicts/lists, which pandas cannot hash.
        logger.debug(f"Vectorized DataFrame hashing failed ({e}); hashing the JSON form instead.")
        payload = df.to_json(orient='split', date_format='iso', default_handler=str)
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()


class DataPipeline:
    """
    A fluent interface for cleaning a tabular record snapshot.

    Usage:
        rows = (DataPipeline(raw_df)
                .clean_column_names()
                .replace_missing_markers()
                .to_records())
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self.df = df.copy()

    def to_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self.df

    def to_records(self) -> List[Dict[str, Any]]:
        """Returns the rows as plain dicts, the shape the adapters consume."""
        if self.df.empty:
            return []
        return self.df.to_dict(orient='records')

    def clean_column_names(self) -> 'DataPipeline':
        """
        Lowercases and underscores header names, and suffixes duplicates.
        Spreadsheet exports often carry headers like ' Patient ID '.
        """
        if self.df.empty and not len(self.df.columns):
            return self

        new_cols = (self.df.columns.astype(str).str.strip().str.lower()
                    .str.replace(r'[^0-9a-zA-Z_]+', '_', regex=True)
                    .str.replace(r'__+', '_', regex=True).str.strip('_'))
        new_cols = [f"unnamed_col_{i}" if not name else name for i, name in enumerate(new_cols)]

        counts = Counter(new_cols)
        if counts and max(counts.values()) > 1:
            seen_counts: Counter = Counter()
            final_cols = []
            for name in new_cols:
                if counts[name] > 1:
                    seen_counts[name] += 1
                    final_cols.append(f"{name}_{seen_counts[name]-1}")
                else:
                    final_cols.append(name)
            self.df.columns = final_cols
        else:
            self.df.columns = new_cols
        return self

    def replace_missing_markers(self) -> 'DataPipeline':
        """Turns NaN and "N/A"-style strings into None so adapters see one kind of gap."""
        if self.df.empty:
            return self
        cleaned = self.df.astype(object).replace(NA_REGEX_PATTERN, np.nan, regex=True).astype(object)
        self.df = cleaned.where(pd.notna(cleaned), None)
        return self

    def strip_strings(self) -> 'DataPipeline':
        """Strips surrounding whitespace from every string cell."""
        if self.df.empty:
            return self
        self.df = self.df.apply(lambda col: col.map(lambda v: v.strip() if isinstance(v, str) else v))
        return self
