"""
Host-facing time-series contract.

These types are what a visualization host exchanges with any data source
executor: raw panel queries in, named point series out, grouped by the
caller's reference id. They are deliberately store-agnostic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from .context import QueryContext


@dataclass(frozen=True, slots=True)
class TsdbQuery:
    """Raw panel query as delivered by the host."""

    ref_id: str
    model: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_panel(cls, model: Mapping[str, Any]) -> "TsdbQuery":
        """Build a query from a panel target, taking ``refId`` from the model itself."""

        ref_id = model.get("refId") if isinstance(model, Mapping) else None
        return cls(ref_id=str(ref_id) if ref_id else "A", model=dict(model))


@dataclass(frozen=True, slots=True)
class TimePoint:
    timestamp: int
    value: Optional[float]

    def to_pair(self) -> list:
        # Grafana's wire order is [value, timestamp].
        return [self.value, self.timestamp]


@dataclass(slots=True)
class TimeSeries:
    name: str
    points: List[TimePoint] = field(default_factory=list)
    tags: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "points": [point.to_pair() for point in self.points],
        }
        if self.tags:
            payload["tags"] = dict(self.tags)
        return payload


@dataclass(slots=True)
class QueryResult:
    ref_id: str
    series: List[TimeSeries] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    def extend(self, series: Iterable[TimeSeries]) -> None:
        self.series.extend(series)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "refId": self.ref_id,
            "series": [item.to_dict() for item in self.series],
        }
        if self.meta:
            payload["meta"] = dict(self.meta)
        return payload


@dataclass(slots=True)
class BatchResult:
    """Results of one batch keyed by reference id."""

    query_results: Dict[str, QueryResult] = field(default_factory=dict)

    def result_for(self, ref_id: str) -> QueryResult:
        """Return the result for ``ref_id``, creating an empty one on first use."""

        result = self.query_results.get(ref_id)
        if result is None:
            result = QueryResult(ref_id=ref_id)
            self.query_results[ref_id] = result
        return result

    def get(self, ref_id: str) -> Optional[QueryResult]:
        return self.query_results.get(ref_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"results": {ref_id: result.to_dict() for ref_id, result in self.query_results.items()}}


class TsdbExecutor(Protocol):
    """Protocol implemented by every time-series data source executor."""

    async def execute(self, queries: Sequence[TsdbQuery], context: QueryContext) -> BatchResult:
        """Run a batch of queries; any failure aborts the whole batch."""
