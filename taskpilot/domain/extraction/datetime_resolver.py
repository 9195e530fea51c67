"""
Natural-language datetime resolution into time bucket keys.

A bucket key is ``YYYY-MM-DDTHH:MM`` in local time. Resolution walks a
prioritized rule list and always produces a key; the heuristics are
best-effort and make no claim to full natural-language understanding.
"""

from typing import Callable, List, Optional, Tuple
from datetime import datetime, timedelta
import re

from dateutil import parser as date_parser

BUCKET_KEY_FORMAT = "%Y-%m-%dT%H:%M"

_CANONICAL_KEY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})$")
_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})")
_TIME_12H = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)", re.IGNORECASE)
_TIME_24H = re.compile(r"(\d{1,2}):(\d{2})")
_TOMORROW = re.compile(r"tomorrow", re.IGNORECASE)
_TODAY = re.compile(r"today", re.IGNORECASE)

# Checked in this order; values are datetime.weekday() numbers
WEEKDAYS: Tuple[Tuple[str, int], ...] = (
    ("sunday", 6),
    ("monday", 0),
    ("tuesday", 1),
    ("wednesday", 2),
    ("thursday", 3),
    ("friday", 4),
    ("saturday", 5),
)

Rule = Callable[[str, datetime], Optional[str]]


def local_datetime_key(value: datetime) -> str:
    return value.strftime(BUCKET_KEY_FORMAT)


def current_datetime_key(now: Optional[datetime] = None) -> str:
    return local_datetime_key(now or datetime.now())


def _rolled_over(match: "re.Match") -> Optional[datetime]:
    """Build a datetime from key fields, carrying overflow like 02-30 or T24:00"""

    year, month, day, hours, minutes = (int(part) for part in match.groups())
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    try:
        return datetime(year, month, 1) + timedelta(days=day - 1, hours=hours, minutes=minutes)
    except (ValueError, OverflowError):
        return None


def datetime_from_key(key: str) -> datetime:
    """Parse a bucket key; anything else falls back to the generic parser"""

    match = _CANONICAL_KEY.match(key) if key else None
    if match:
        return _rolled_over(match) or datetime.now()
    try:
        return date_parser.parse(key)
    except (ValueError, OverflowError, TypeError):
        return datetime.now()


def format_group_header(key: str) -> str:
    """Human-readable label for a bucket key"""
    return datetime_from_key(key).strftime("%m/%d/%Y, %I:%M:%S %p")


def parse_time_of_day(raw: str) -> Optional[Tuple[int, int]]:
    """Extract ``(hours, minutes)`` from 12-hour or 24-hour notation"""

    match = _TIME_12H.search(raw)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        meridiem = match.group(3).lower()
        if meridiem == "pm" and hours != 12:
            hours += 12
        if meridiem == "am" and hours == 12:
            hours = 0
        return hours, minutes

    match = _TIME_24H.search(raw)
    if match:
        return int(match.group(1)), int(match.group(2))
    return None


def _on_day(day: datetime, raw: str) -> str:
    time_of_day = parse_time_of_day(raw)
    if time_of_day is None:
        return local_datetime_key(day)
    hours, minutes = time_of_day
    # Out-of-range values roll over instead of failing
    midnight = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return local_datetime_key(midnight + timedelta(hours=hours, minutes=minutes))


def _canonical(raw: str, now: datetime) -> Optional[str]:
    match = _CANONICAL_KEY.match(raw)
    if not match:
        return None
    rolled = _rolled_over(match)
    return local_datetime_key(rolled) if rolled else None


def _tomorrow(raw: str, now: datetime) -> Optional[str]:
    if not _TOMORROW.search(raw):
        return None
    return _on_day(now + timedelta(days=1), raw)


def _today(raw: str, now: datetime) -> Optional[str]:
    if not _TODAY.search(raw):
        return None
    return _on_day(now, raw)


def _weekday(raw: str, now: datetime) -> Optional[str]:
    lowered = raw.lower()
    for name, weekday in WEEKDAYS:
        if name not in lowered:
            continue
        days_until = (weekday - now.weekday()) % 7
        if days_until == 0:
            days_until = 7
        return _on_day(now + timedelta(days=days_until), raw)
    return None


def _generic(raw: str, now: datetime) -> Optional[str]:
    try:
        parsed = date_parser.parse(raw, default=now.replace(second=0, microsecond=0))
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return local_datetime_key(parsed)


def _iso_prefix(raw: str, now: datetime) -> Optional[str]:
    match = _ISO_PREFIX.match(raw)
    if not match:
        return None
    rolled = _rolled_over(match)
    return local_datetime_key(rolled) if rolled else None


RULES: List[Rule] = [
    _canonical,
    _tomorrow,
    _today,
    _weekday,
    _generic,
    _iso_prefix,
]


def resolve_datetime(raw: Optional[str], now: Optional[datetime] = None) -> str:
    """Map a datetime expression onto a bucket key, falling back to ``now``"""

    now = now or datetime.now()
    if raw is None:
        return local_datetime_key(now)

    raw = str(raw).strip()
    if not raw:
        return local_datetime_key(now)

    for rule in RULES:
        key = rule(raw, now)
        if key is not None:
            return key

    return local_datetime_key(now)
