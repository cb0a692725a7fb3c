"""
Adapter interfaces for remote time-series stores.

Concrete adapters live in submodules keyed by concern: ``api`` holds the shared
HTTP plumbing, ``tsdb`` the store-specific query executors.
"""

from .base import AdapterError, DataSourceAdapter, VerificationResult

__all__ = [
    "AdapterError",
    "DataSourceAdapter",
    "VerificationResult",
]
