"""
Core infrastructure shared by the data source executors.

Exposes the host-facing time-series contract, the query context, the executor
registry and data source catalogue, and logging helpers.
"""

from .context import QueryContext
from .logging import bind_extra, bind_tags, configure_logging, get_logger, log_progress
from .registry import (
    CatalogueLoadError,
    DataSourceCatalogue,
    ExecutorRegistry,
)
from .timerange import TimeRange
from .tsdb import BatchResult, QueryResult, TimePoint, TimeSeries, TsdbExecutor, TsdbQuery

__all__ = [
    "BatchResult",
    "CatalogueLoadError",
    "DataSourceCatalogue",
    "ExecutorRegistry",
    "QueryContext",
    "QueryResult",
    "TimePoint",
    "TimeRange",
    "TimeSeries",
    "TsdbExecutor",
    "TsdbQuery",
    "bind_extra",
    "bind_tags",
    "configure_logging",
    "get_logger",
    "log_progress",
]
