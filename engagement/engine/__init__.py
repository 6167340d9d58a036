"""
Metric computation engine.

Turns the raw event log into dashboard metrics:

- payload: format-descriptor extraction of offer ids, amounts and channels
- calculations: rates, time buckets, income brackets, display formatting
- fallbacks: the table of default values and reference constants
- policy: per-metric backend error policy and aggregator tracing
- aggregators: one coroutine per metric
- assembler: concurrent, all-or-nothing dashboard assembly
"""

from .assembler import DashboardAssembler, DashboardLoadError
from .fallbacks import FallbackTable, build_default_fallbacks, get_fallback_table
from .payload import extract_amount, extract_offer_id, parse_channels
from .policy import DEFAULT_ERROR_POLICIES, resolve_error_policies, run_aggregator

__all__ = [
    "DashboardAssembler",
    "DashboardLoadError",
    "FallbackTable",
    "build_default_fallbacks",
    "get_fallback_table",
    "extract_amount",
    "extract_offer_id",
    "parse_channels",
    "DEFAULT_ERROR_POLICIES",
    "resolve_error_policies",
    "run_aggregator",
]
