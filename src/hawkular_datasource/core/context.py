"""
Query context passed alongside every batch.

The context carries what all queries of a batch share: the dashboard time
range, an optional deadline, and observability tags for log attribution.
Cancellation itself follows the anyio model: cancelling the task or cancel
scope that awaits :meth:`TsdbExecutor.execute` aborts the in-flight request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Mapping, Optional, Sequence

from .logging import get_logger as _get_logger
from .timerange import TimeRange


@dataclass(slots=True)
class QueryContext:
    """
    Shared execution context for a batch of panel queries.

    Attributes
    ----------
    time_range:
        Range applied to every query of the batch.
    deadline:
        Optional budget in seconds for the whole batch. When exceeded the
        executor raises :class:`~hawkular_datasource.adapters.api.base.QueryCancelledError`.
    observability_tags:
        Tags surfaced in log records emitted while serving the batch.
    extra:
        Free-form metadata from the host (dashboard id, panel id, user).
    """

    time_range: TimeRange = field(default_factory=TimeRange)
    deadline: Optional[float] = None
    observability_tags: Sequence[str] = field(default_factory=tuple)
    extra: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError("deadline must be a positive number of seconds.")

    def get_logger(self, name: str, *, extra: Optional[Mapping[str, object]] = None) -> LoggerAdapter:
        """Return a logger adapter carrying the context's observability tags."""

        tags = tuple(self.observability_tags)
        merged = dict(self.extra)
        if extra:
            merged.update(extra)
        return _get_logger(name, tags=tags or None, extra=merged or None)
