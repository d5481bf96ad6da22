# clinic_records/data_processing/cached.py
# STREAMLIT CACHING LAYER

"""
Cached entry points for dashboard callers. They take raw roster and event
tables as DataFrames (hashed by content via `hash_dataframe`) and return
plain results, so a dashboard can recompute on every rerun for free.
"""

from typing import Any, Dict

import pandas as pd
import streamlit as st

from config import settings
from .adapters import adapt_events, adapt_roster
from .dates import to_month_window
from .helpers import DataPipeline, hash_dataframe
from .logic import summarize

CACHE_TTL_SECONDS = settings.WEB_CACHE_TTL_SECONDS


def _rows(df: pd.DataFrame):
    if not isinstance(df, pd.DataFrame):
        return []
    return DataPipeline(df).replace_missing_markers().to_records()


def _summary_as_dict(summary) -> Dict[str, Any]:
    financial = summary.financial_totals
    return {
        'window': str(summary.window) if summary.window is not None else None,
        'total_patients': summary.total_patients,
        'total_slots': summary.total_slots,
        'counts': {status.value: count for status, count in summary.counts.items()},
        'not_marked': summary.not_marked,
        'entry_count': summary.entry_count,
        'total_amount': financial.total_amount if financial else None,
    }


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_month_summary(roster_df: pd.DataFrame, events_df: pd.DataFrame, kind: str, month: int, year: int) -> Dict[str, Any]:
    """Cached month summary as a plain dict (status names as keys)."""
    # analytics imports this package, so its modules are imported at call time.
    from analytics.reconciliation import reconcile_window

    window = to_month_window(month, year)
    events = adapt_events(kind, _rows(events_df))
    slots = reconcile_window(adapt_roster(_rows(roster_df)), events, window, kind)
    return _summary_as_dict(summarize(slots, window))


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_day_summary(roster_df: pd.DataFrame, events_df: pd.DataFrame, kind: str, day: str) -> Dict[str, Any]:
    """Cached single-day summary as a plain dict."""
    from analytics.reconciliation import reconcile_day

    events = adapt_events(kind, _rows(events_df))
    slots = reconcile_day(adapt_roster(_rows(roster_df)), events, day, kind)
    return _summary_as_dict(summarize(slots, day))


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_matrix_frame(roster_df: pd.DataFrame, events_df: pd.DataFrame, kind: str, month: int, year: int) -> pd.DataFrame:
    """Cached export grid for a month, in the same layout as the CSV export."""
    from analytics.matrix_export import matrix_to_frame, to_matrix

    window = to_month_window(month, year)
    events = adapt_events(kind, _rows(events_df))
    return matrix_to_frame(to_matrix(adapt_roster(_rows(roster_df)), events, window, kind))
