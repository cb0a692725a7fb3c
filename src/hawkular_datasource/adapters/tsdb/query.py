"""
Typed Hawkular panel queries.

Panel models arrive as loosely typed JSON. :meth:`HawkularQuery.from_model`
validates them once at the boundary so the executor works with a fixed shape.
A model targets metrics either by explicit id (``queryBy: ids`` and
``target``) or by tag filter (``queryBy: tags`` and ``tags``)::

    {"refId": "A", "queryBy": "tags", "type": "gauge",
     "tags": [{"name": "heap", "value": "used"}],
     "timeAggFn": "avg", "seriesAggFn": "none", "rate": false}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..base import AdapterError

SORT_ORDER = "ASC"
SERIES_AGGREGATIONS = ("none", "sum", "avg", "min", "max")


class QueryValidationError(AdapterError):
    """Raised when a panel model is missing fields or carries mistyped values."""


class QueryBy(str, Enum):
    IDS = "ids"
    TAGS = "tags"


class MetricType(str, Enum):
    """Hawkular metric types and the REST collection each one lives under."""

    GAUGE = "gauge"
    COUNTER = "counter"
    AVAILABILITY = "availability"
    STRING = "string"

    @property
    def endpoint(self) -> str:
        # Availability is the one collection that is not pluralised.
        if self is MetricType.AVAILABILITY:
            return "availability"
        return f"{self.value}s"

    @property
    def supports_rate(self) -> bool:
        return self in (MetricType.GAUGE, MetricType.COUNTER)


@dataclass(frozen=True, slots=True)
class Tag:
    name: str
    value: str

    def render(self) -> str:
        return f"{self.name}:{self.value}"


@dataclass(frozen=True, slots=True)
class HawkularQuery:
    """
    Validated panel query.

    Exactly one of ``target`` (``queryBy == ids``) or ``tags``
    (``queryBy == tags``) drives the request.
    """

    ref_id: str
    query_by: QueryBy
    metric_type: MetricType = MetricType.GAUGE
    target: Optional[str] = None
    tags: Tuple[Tag, ...] = field(default_factory=tuple)
    rate: bool = False
    time_agg_fn: str = "avg"
    series_agg_fn: str = "none"
    raw_query: Optional[str] = None

    @classmethod
    def from_model(cls, ref_id: str, model: Mapping[str, Any]) -> "HawkularQuery":
        """Validate a raw panel model, raising :class:`QueryValidationError` on bad input."""

        if not isinstance(model, Mapping):
            raise QueryValidationError(f"Query '{ref_id}': model must be a mapping, got {type(model).__name__}.")
        resolved_ref = _expect_str(str(ref_id), "refId", ref_id or model.get("refId") or "A")

        query_by_raw = _expect_str(resolved_ref, "queryBy", model.get("queryBy", QueryBy.IDS.value))
        try:
            query_by = QueryBy(query_by_raw.lower())
        except ValueError:
            raise QueryValidationError(f"Query '{resolved_ref}': queryBy must be one of 'ids', 'tags', got '{query_by_raw}'.") from None

        type_raw = _expect_str(resolved_ref, "type", model.get("type", MetricType.GAUGE.value))
        try:
            metric_type = MetricType(type_raw.lower())
        except ValueError:
            allowed = ", ".join(f"'{item.value}'" for item in MetricType)
            raise QueryValidationError(f"Query '{resolved_ref}': type must be one of {allowed}, got '{type_raw}'.") from None

        target: Optional[str] = None
        tags: Tuple[Tag, ...] = ()
        if query_by is QueryBy.IDS:
            target = _expect_str(resolved_ref, "target", model.get("target"))
            if not target.strip():
                raise QueryValidationError(f"Query '{resolved_ref}': target is required when querying by ids.")
        else:
            tags = _parse_tags(resolved_ref, model.get("tags"))
            if not tags:
                raise QueryValidationError(f"Query '{resolved_ref}': at least one tag is required when querying by tags.")

        rate = model.get("rate", False)
        if not isinstance(rate, bool):
            raise QueryValidationError(f"Query '{resolved_ref}': rate must be a boolean, got {rate!r}.")
        if rate and not metric_type.supports_rate:
            raise QueryValidationError(f"Query '{resolved_ref}': rate is not available for {metric_type.value} metrics.")

        series_agg_fn = _expect_str(resolved_ref, "seriesAggFn", model.get("seriesAggFn", "none")).lower()
        if series_agg_fn not in SERIES_AGGREGATIONS:
            raise QueryValidationError(f"Query '{resolved_ref}': seriesAggFn must be one of {', '.join(SERIES_AGGREGATIONS)}, got '{series_agg_fn}'.")

        raw_query = model.get("rawQuery")
        if raw_query is not None and not isinstance(raw_query, str):
            raise QueryValidationError(f"Query '{resolved_ref}': rawQuery must be a string.")

        return cls(
            ref_id=resolved_ref,
            query_by=query_by,
            metric_type=metric_type,
            target=target,
            tags=tags,
            rate=rate,
            time_agg_fn=_expect_str(resolved_ref, "timeAggFn", model.get("timeAggFn", "avg")),
            series_agg_fn=series_agg_fn,
            raw_query=raw_query or None,
        )

    @property
    def ids(self) -> List[str]:
        return [self.target] if self.query_by is QueryBy.IDS and self.target else []

    @property
    def tag_filter(self) -> str:
        return ",".join(tag.render() for tag in self.tags)

    @property
    def path(self) -> str:
        """Endpoint path relative to the data source base URL."""

        if self.rate:
            return f"/{self.metric_type.endpoint}/rate/raw/query"
        return f"/{self.metric_type.endpoint}/raw/query"

    def build_body(self, start_ms: int, end_ms: int) -> Dict[str, Any]:
        """Return the raw query body; ``ids`` and ``tags`` are mutually exclusive."""

        body: Dict[str, Any] = {"start": start_ms, "end": end_ms, "order": SORT_ORDER}
        if self.query_by is QueryBy.TAGS:
            body["tags"] = self.tag_filter
        else:
            body["ids"] = self.ids
        return body

    def describe(self) -> Dict[str, Any]:
        """Metric descriptor used for debug logging."""

        return {
            "ref_id": self.ref_id,
            "query_by": self.query_by.value,
            "metric_type": self.metric_type.value,
            "target": self.target,
            "tags": self.tag_filter or None,
            "rate": self.rate,
            "time_agg_fn": self.time_agg_fn,
            "series_agg_fn": self.series_agg_fn,
            "raw_query": self.raw_query,
        }


def _expect_str(ref_id: str, key: str, value: Any) -> str:
    if not isinstance(value, str):
        if value is None:
            raise QueryValidationError(f"Query '{ref_id}': {key} is required.")
        raise QueryValidationError(f"Query '{ref_id}': {key} must be a string, got {type(value).__name__}.")
    return value


def _parse_tags(ref_id: str, raw: Any) -> Tuple[Tag, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise QueryValidationError(f"Query '{ref_id}': tags must be a list of {{name, value}} objects.")
    tags: List[Tag] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise QueryValidationError(f"Query '{ref_id}': tags[{index}] must be an object.")
        name = entry.get("name")
        value = entry.get("value")
        if not isinstance(name, str) or not name:
            raise QueryValidationError(f"Query '{ref_id}': tags[{index}].name must be a non-empty string.")
        if not isinstance(value, str):
            raise QueryValidationError(f"Query '{ref_id}': tags[{index}].value must be a string.")
        tags.append(Tag(name=name, value=value))
    return tuple(tags)
