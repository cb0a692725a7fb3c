"""
HTTP plumbing shared by store adapters.
"""

from .base import (
    APIError,
    BaseAPIClient,
    QueryCancelledError,
    RemoteStatusError,
    RequestBuildError,
    ResponseDecodeError,
    TransportError,
)

__all__ = [
    "APIError",
    "BaseAPIClient",
    "QueryCancelledError",
    "RemoteStatusError",
    "RequestBuildError",
    "ResponseDecodeError",
    "TransportError",
]
