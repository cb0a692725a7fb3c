"""
Hawkular Metrics data source for dashboard hosts.

:class:`~hawkular_datasource.adapters.tsdb.HawkularExecutor` turns panel query
models into Hawkular raw queries and returns generic time series keyed by
reference id. Hosts build it from :class:`~hawkular_datasource.config.DataSourceSettings`
directly or through :func:`~hawkular_datasource.services.build_default_registry`.
"""

from .adapters import AdapterError, VerificationResult
from .adapters.api import APIError, QueryCancelledError, RemoteStatusError, RequestBuildError, ResponseDecodeError, TransportError
from .adapters.tsdb import HawkularClient, HawkularExecutor, HawkularQuery, QueryValidationError
from .config import ConfigurationError, DataSourceSettings
from .core import BatchResult, QueryContext, QueryResult, TimePoint, TimeRange, TimeSeries, TsdbQuery
from .services import DataSourceServices, build_default_registry

__all__ = [
    "APIError",
    "AdapterError",
    "BatchResult",
    "ConfigurationError",
    "DataSourceServices",
    "DataSourceSettings",
    "HawkularClient",
    "HawkularExecutor",
    "HawkularQuery",
    "QueryCancelledError",
    "QueryContext",
    "QueryResult",
    "QueryValidationError",
    "RemoteStatusError",
    "RequestBuildError",
    "ResponseDecodeError",
    "TimePoint",
    "TimeRange",
    "TimeSeries",
    "TransportError",
    "TsdbQuery",
    "VerificationResult",
    "build_default_registry",
]
