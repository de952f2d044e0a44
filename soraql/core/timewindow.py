"""Time window parsing for query scoping.

Accepted forms for each bound:
  ""                      unset
  now                     current time (case-insensitive)
  1640995200              Unix timestamp (2000-01-01 <= ts < 2100-01-01)
  -30s -15m -24h -7d -1w  relative to now
  2024-01-01T00:00:00Z    RFC 3339
  2024-01-01 00:00:00 | 2024-01-01T00:00:00 | 2024-01-01 00:00 | 2024-01-01   (UTC)
"""
from __future__ import annotations
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from soraql.core.errors import TimeFormatError, TimeOutOfRangeError, TimeRangeError
from soraql.utils.constants import MIN_TIMESTAMP, MAX_TIMESTAMP

UNIT_SECONDS = {
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
    'w': 7 * 86400,
}
DATETIME_FORMATS = [
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d',
]
INTEGER_RE = re.compile(r'^[+-]?[0-9]+$')
DIGITS_RE = re.compile(r'[0-9]+')
RFC3339_RE = re.compile(
    r'^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$'
)


@dataclass(frozen=True)
class TimeWindow:
    """[from, to) bounds in epoch seconds; None means unset."""
    from_time: Optional[int] = None
    to_time: Optional[int] = None

    @property
    def is_set(self) -> bool:
        return bool(self.from_time) or bool(self.to_time)

    def describe(self) -> str:
        if not self.is_set:
            return "No time window set (queries will use default time range)"
        lines = ["Current time window:"]
        lines.append("  From: " + _describe_bound(self.from_time))
        lines.append("  To:   " + _describe_bound(self.to_time))
        return "\n".join(lines)


def _describe_bound(value: Optional[int]) -> str:
    if not value:
        return "(not set)"
    stamp = datetime.fromtimestamp(value, tz=timezone.utc).isoformat().replace('+00:00', 'Z')
    return f"{value} ({stamp})"


def parse_relative(body: str) -> int:
    """Parse a relative duration body such as '24h' into seconds."""
    if len(body) < 2:
        raise TimeFormatError("invalid relative time format")
    unit = body[-1]
    value_str = body[:-1]
    if not DIGITS_RE.fullmatch(value_str):
        raise TimeFormatError("invalid numeric value in relative time")
    if unit not in UNIT_SECONDS:
        raise TimeFormatError(f"unsupported time unit '{unit}' (supported: s, m, h, d, w)")
    return int(value_str) * UNIT_SECONDS[unit]


def _parse_rfc3339(text: str) -> Optional[int]:
    m = RFC3339_RE.match(text)
    if not m:
        return None
    date_part, time_part, fraction, offset = m.groups()
    if offset in ('Z', 'z'):
        offset = '+00:00'
    iso = f"{date_part}T{time_part}"
    if fraction:
        iso += '.' + fraction[:6].ljust(6, '0')
    try:
        return int(datetime.fromisoformat(iso + offset).timestamp())
    except ValueError:
        return None


def parse_time_param(text: str, now: Optional[float] = None) -> int:
    """Resolve a single bound to epoch seconds."""
    current = int(now if now is not None else time.time())
    if text.lower() == 'now':
        return current
    if INTEGER_RE.match(text):
        ts = int(text)
        if MIN_TIMESTAMP <= ts < MAX_TIMESTAMP:
            return ts
        raise TimeOutOfRangeError(f"timestamp {ts} is out of reasonable range")
    if text.startswith('-'):
        return current - parse_relative(text[1:])
    ts = _parse_rfc3339(text)
    if ts is not None:
        return ts
    for fmt in DATETIME_FORMATS:
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return int(dt.replace(tzinfo=timezone.utc).timestamp())
    raise TimeFormatError("unable to parse time format")


def parse_time_window(from_str: str, to_str: str, now: Optional[float] = None) -> TimeWindow:
    """Parse both bounds and enforce from < to when both are set."""
    from_time = to_time = None
    if from_str:
        try:
            from_time = parse_time_param(from_str, now)
        except (TimeFormatError, TimeOutOfRangeError) as e:
            raise type(e)(f"invalid from time '{from_str}': {e}") from e
    if to_str:
        try:
            to_time = parse_time_param(to_str, now)
        except (TimeFormatError, TimeOutOfRangeError) as e:
            raise type(e)(f"invalid to time '{to_str}': {e}") from e
    if from_time and to_time and from_time >= to_time:
        raise TimeRangeError(f"from time ({from_time}) must be before to time ({to_time})")
    return TimeWindow(from_time=from_time, to_time=to_time)
