"""
Decoding of Hawkular raw query responses.

The store answers ``POST .../raw/query`` with a list of series::

    [{"id": "m1", "data": [{"timestamp": 1000, "value": 2.5}, ...]}, ...]

or with ``204 No Content`` when nothing matched.
"""

from __future__ import annotations

from collections import defaultdict
from statistics import fmean
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ...core.tsdb import TimePoint, TimeSeries
from ..api.base import ResponseDecodeError

AVAILABILITY_VALUES: Mapping[str, Optional[float]] = {
    "up": 1.0,
    "down": 0.0,
    "unknown": None,
}

_AGGREGATORS: Mapping[str, Callable[[Sequence[float]], float]] = {
    "sum": sum,
    "avg": fmean,
    "min": min,
    "max": max,
}


def coerce_value(value: Any) -> Optional[float]:
    """Convert a point value into a nullable float."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in AVAILABILITY_VALUES:
            return AVAILABILITY_VALUES[lowered]
        try:
            return float(lowered)
        except ValueError:
            return None
    return None


def _parse_point(series_id: str, index: int, raw: Any) -> TimePoint:
    if not isinstance(raw, Mapping):
        raise ResponseDecodeError(f"Series '{series_id}': data[{index}] is not an object.")
    timestamp = raw.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise ResponseDecodeError(f"Series '{series_id}': data[{index}] has no integer timestamp.")
    return TimePoint(timestamp=timestamp, value=coerce_value(raw.get("value")))


def parse_series(payload: Any) -> List[TimeSeries]:
    """Turn a decoded response payload into :class:`TimeSeries` objects."""

    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ResponseDecodeError(f"Expected a list of series, got {type(payload).__name__}.")

    series: List[TimeSeries] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, Mapping):
            raise ResponseDecodeError(f"Series at position {index} is not an object.")
        series_id = entry.get("id")
        if not isinstance(series_id, str):
            raise ResponseDecodeError(f"Series at position {index} has no string id.")
        data = entry.get("data") or []
        if not isinstance(data, list):
            raise ResponseDecodeError(f"Series '{series_id}': data must be a list.")
        tags = entry.get("tags")
        series.append(
            TimeSeries(
                name=series_id,
                points=[_parse_point(series_id, point_index, point) for point_index, point in enumerate(data)],
                tags={str(key): str(value) for key, value in tags.items()} if isinstance(tags, Mapping) else {},
            )
        )
    return series


def aggregate_series(series: Iterable[TimeSeries], function: str) -> List[TimeSeries]:
    """
    Fold all ``series`` into one, point by point.

    Points are grouped by timestamp and null values are skipped. A timestamp
    with only null values yields a null point. ``none`` returns the input
    unchanged.
    """

    materialised = list(series)
    if function == "none" or not materialised:
        return materialised
    try:
        aggregator = _AGGREGATORS[function]
    except KeyError:
        raise ValueError(f"Unknown series aggregation '{function}'.") from None

    buckets: Dict[int, List[float]] = defaultdict(list)
    for item in materialised:
        for point in item.points:
            bucket = buckets[point.timestamp]
            if point.value is not None:
                bucket.append(point.value)

    points = [TimePoint(timestamp=timestamp, value=aggregator(values) if values else None) for timestamp, values in sorted(buckets.items())]
    return [TimeSeries(name=function, points=points)]
