"""
Time-series store executors.

:mod:`.hawkular` implements the Hawkular Metrics executor; :mod:`.query` and
:mod:`.series` hold its request and response models.
"""

from .hawkular import TENANT_HEADER, HawkularClient, HawkularExecutor
from .query import HawkularQuery, MetricType, QueryBy, QueryValidationError, Tag
from .series import aggregate_series, coerce_value, parse_series

__all__ = [
    "HawkularClient",
    "HawkularExecutor",
    "HawkularQuery",
    "MetricType",
    "QueryBy",
    "QueryValidationError",
    "TENANT_HEADER",
    "Tag",
    "aggregate_series",
    "coerce_value",
    "parse_series",
]
