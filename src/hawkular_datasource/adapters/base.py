"""
Base protocols for data source adapters.

Adapters stay narrow: they verify connectivity and perform well-defined fetch
operations against one store. Composition (catalogue lookup, CLI rendering)
lives in the service layer so adapters remain reusable by any host.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol


class AdapterError(RuntimeError):
    """Raised when an adapter encounters a non-recoverable error."""


@dataclass(slots=True)
class VerificationResult:
    """
    Structured response returned by adapter verification routines.

    Attributes
    ----------
    success:
        Indicates whether the verification succeeded.
    message:
        Human-readable summary.
    details:
        Optional structured metadata such as the remote store version.
    """

    success: bool
    message: str
    details: Optional[Mapping[str, object]] = None


class DataSourceAdapter(Protocol):
    """Protocol implemented by all data source adapters."""

    async def verify(self) -> VerificationResult:
        """Perform a lightweight connectivity check."""

    @property
    def source_id(self) -> str:
        """Name of the configured data source."""
