"""
Panel time ranges.

Hosts hand over the dashboard range as raw strings: ``now``, relative
expressions such as ``now-6h``, epoch milliseconds, or ISO-8601 datetimes.
Hawkular expects ``start``/``end`` as epoch milliseconds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Callable, Optional

_RELATIVE_PATTERN = re.compile(r"^now(?:-(?P<amount>\d+)(?P<unit>[smhdwMy]))?$")
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
    "M": 30 * 86400,
    "y": 365 * 86400,
}


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_time_expression(expression: str, *, now: datetime) -> datetime:
    """Resolve a single raw time expression against ``now``."""

    text = str(expression).strip()
    if not text:
        raise ValueError("Time expression cannot be empty.")

    match = _RELATIVE_PATTERN.match(text)
    if match:
        amount = match.group("amount")
        if amount is None:
            return now
        return now - timedelta(seconds=int(amount) * _UNIT_SECONDS[match.group("unit")])

    if text.isdigit():
        return _EPOCH + timedelta(milliseconds=int(text))

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Unsupported time expression '{expression}'.") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def to_epoch_ms(moment: datetime) -> int:
    # Exact for millisecond inputs.
    return (moment - _EPOCH) // _ONE_MS


@dataclass(frozen=True, slots=True)
class TimeRange:
    """
    Raw ``from``/``to`` pair shared by every query in a batch.

    Attributes
    ----------
    from_raw:
        Range start expression, e.g. ``now-1h``.
    to_raw:
        Range end expression, e.g. ``now``.
    clock:
        Callable returning the current UTC time. Injected by tests.
    """

    from_raw: str = "now-1h"
    to_raw: str = "now"
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False, compare=False)

    def resolve(self, now: Optional[datetime] = None) -> tuple[int, int]:
        """Return ``(start_ms, end_ms)`` resolved against a single ``now``."""

        reference = now or self.clock()
        start = to_epoch_ms(parse_time_expression(self.from_raw, now=reference))
        end = to_epoch_ms(parse_time_expression(self.to_raw, now=reference))
        if start > end:
            raise ValueError(f"Time range start '{self.from_raw}' is after end '{self.to_raw}'.")
        return start, end

    def from_epoch_ms(self) -> int:
        return self.resolve()[0]

    def to_epoch_ms(self) -> int:
        return self.resolve()[1]

    @classmethod
    def from_epoch(cls, start_ms: int, end_ms: int) -> "TimeRange":
        return cls(from_raw=str(int(start_ms)), to_raw=str(int(end_ms)))
