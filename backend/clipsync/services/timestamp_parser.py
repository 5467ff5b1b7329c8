"""
ClipSync Backend — Client Timestamp Normalizer
===============================================

What:  Parses client-asserted event times into timezone-aware UTC datetimes.
Why:   Clients run on heterogeneous platforms whose default serialization
       differs in sub-second precision and timezone suffix (Dart emits
       microseconds without a zone, JavaScript milliseconds with "Z", desktop
       agents often send "YYYY-MM-DD HH:MM:SS" or a bare Unix epoch). A single
       strict format would reject valid client data.
How:   A fixed, ordered list of patterns is tried against the whole string;
       the first one that matches AND yields a valid calendar value wins.
       There is no ambiguity resolution beyond this ordering.

Rules:
    - None / "" / whitespace → None ("no timestamp supplied"; the caller
      substitutes the server's current time)
    - Values without a zone are interpreted as UTC
    - Nanosecond fractions are truncated to microseconds
    - Anything else → UnparseableTimestampError(value, attempted)
"""

import re
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional, Tuple

from clipsync.exceptions import UnparseableTimestampError


class TimestampPattern(NamedTuple):
    name: str
    regex: "re.Pattern[str]"
    epoch: bool = False


_TIME = r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
_ZONE = r"(?P<tz>Z|[+-]\d{2}:\d{2})"


def _dt(sep: str, date_time_sep: str, frac: Optional[str], zone: Optional[str]) -> "re.Pattern[str]":
    date = r"(?P<year>\d{4})" + sep + r"(?P<month>\d{2})" + sep + r"(?P<day>\d{2})"
    body = date + date_time_sep + _TIME
    if frac:
        body += r"\.(?P<frac>" + frac + ")"
    if zone:
        body += zone
    return re.compile(body)


def _epoch(frac: Optional[str]) -> "re.Pattern[str]":
    body = r"(?P<seconds>\d{1,12})"
    if frac:
        body += r"\.(?P<frac>" + frac + ")"
    return re.compile(body)


# Ordered by decreasing specificity / likelihood. Order is part of the contract.
TIMESTAMP_PATTERNS: Tuple[TimestampPattern, ...] = (
    # Fractional-second ISO 8601 (mobile clients)
    TimestampPattern("iso_microseconds", _dt("-", "T", r"\d{6}", None)),
    TimestampPattern("iso_milliseconds", _dt("-", "T", r"\d{3}", None)),
    TimestampPattern("iso_microseconds_utc", _dt("-", "T", r"\d{6}", "Z")),
    TimestampPattern("iso_milliseconds_utc", _dt("-", "T", r"\d{3}", "Z")),
    TimestampPattern("iso_nanoseconds", _dt("-", "T", r"\d{9}", None)),
    TimestampPattern("iso_nanoseconds_utc", _dt("-", "T", r"\d{9}", "Z")),
    # Standard ISO 8601 / RFC 3339
    TimestampPattern("rfc3339_fractional", _dt("-", "T", r"\d{1,9}", _ZONE)),
    TimestampPattern("rfc3339", _dt("-", "T", None, _ZONE)),
    TimestampPattern("iso_utc", _dt("-", "T", None, "Z")),
    TimestampPattern("iso_basic", _dt("-", "T", None, None)),
    TimestampPattern("iso_fractional", _dt("-", "T", r"\d{1,9}", None)),
    # Space- and slash-delimited date-times (desktop agents)
    TimestampPattern("space_microseconds", _dt("-", " ", r"\d{6}", None)),
    TimestampPattern("space_milliseconds", _dt("-", " ", r"\d{3}", None)),
    TimestampPattern("space_seconds", _dt("-", " ", None, None)),
    TimestampPattern("slash_microseconds", _dt("/", " ", r"\d{6}", None)),
    TimestampPattern("slash_milliseconds", _dt("/", " ", r"\d{3}", None)),
    TimestampPattern("slash_seconds", _dt("/", " ", None, None)),
    # Bare Unix epoch
    TimestampPattern("epoch_microseconds", _epoch(r"\d{6}"), epoch=True),
    TimestampPattern("epoch_milliseconds", _epoch(r"\d{3}"), epoch=True),
    TimestampPattern("epoch_fractional", _epoch(r"\d{1,9}"), epoch=True),
    TimestampPattern("epoch_seconds", _epoch(None), epoch=True),
)


def _microseconds(frac: Optional[str]) -> int:
    if not frac:
        return 0
    # Pad "5" → "500000", truncate nanoseconds "123456789" → "123456"
    return int(frac[:6].ljust(6, "0"))


def _zone(tz: Optional[str]) -> timezone:
    if not tz or tz == "Z":
        return timezone.utc
    sign = 1 if tz[0] == "+" else -1
    hours, minutes = int(tz[1:3]), int(tz[4:6])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _build(pattern: TimestampPattern, match: "re.Match[str]") -> datetime:
    parts = match.groupdict()
    if pattern.epoch:
        base = datetime.fromtimestamp(int(parts["seconds"]), tz=timezone.utc)
        return base + timedelta(microseconds=_microseconds(parts.get("frac")))
    value = datetime(
        int(parts["year"]),
        int(parts["month"]),
        int(parts["day"]),
        int(parts["hour"]),
        int(parts["minute"]),
        int(parts["second"]),
        _microseconds(parts.get("frac")),
        tzinfo=_zone(parts.get("tz")),
    )
    return value.astimezone(timezone.utc)


def parse_client_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a client timestamp.

    Returns:
        A timezone-aware UTC datetime, or None when no value was supplied.

    Raises:
        UnparseableTimestampError: non-empty value matching no pattern
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    for pattern in TIMESTAMP_PATTERNS:
        match = pattern.regex.fullmatch(text)
        if match is None:
            continue
        try:
            return _build(pattern, match)
        except (ValueError, OverflowError, OSError):
            # Shape matched but the calendar value is impossible (e.g. month 13)
            continue

    raise UnparseableTimestampError(value=value, attempted=len(TIMESTAMP_PATTERNS))


def normalize_or_now(value: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Parsed client time, or the server's current UTC time when none was supplied."""
    parsed = parse_client_timestamp(value)
    if parsed is not None:
        return parsed
    return now or datetime.now(timezone.utc)
