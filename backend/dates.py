"""
Date helpers for meeting dates.

Meeting dates come from the LLM as strings ("2026-02-27", "2026-02-27T14:00:00")
and from Firestore as timestamps. Comparisons are done on calendar days in the
bot's timezone (BOT_TIMEZONE), never on raw time deltas.
"""
import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

import config

DateLike = Union[datetime, date, str]

_LEADING_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
_BARE_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def local_tz() -> ZoneInfo:
    return ZoneInfo(config.BOT_TIMEZONE)


def today() -> date:
    return datetime.now(local_tz()).date()


def normalize_year(date_str: str, now: Optional[datetime] = None) -> str:
    """
    Rewrite a stale year to the current one.

    The extractor sometimes anchors "27/02" to a training-era year. Any string
    starting with YYYY-MM-DD whose year is before the current year gets the
    current year; month, day and trailing time are kept.
    """
    match = _LEADING_DATE.match(date_str)
    if not match:
        return date_str

    current_year = (now or datetime.now(local_tz())).year
    if int(match.group(1)) >= current_year:
        return date_str

    rest = date_str[4:]
    # 29/02 does not exist in a non-leap current year
    if rest.startswith('-02-29') and not calendar.isleap(current_year):
        rest = '-02-28' + rest[6:]
    return f"{current_year:04d}{rest}"


def _parse_iso(value: str) -> datetime:
    # fromisoformat only accepts "Z" from Python 3.11 on
    return datetime.fromisoformat(value.strip().replace('Z', '+00:00'))


def to_storage_date(value: DateLike) -> datetime:
    """
    Convert a meeting date to what gets written to Firestore.

    Day-only dates are stored at noon UTC so that they still fall on the same
    day when shown in a UTC-3 timezone (midnight UTC would become 21h of the
    previous day).
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time(12, 0), tzinfo=timezone.utc)

    text = str(value).strip()
    if _BARE_DATE.match(text):
        return datetime.combine(date.fromisoformat(text), time(12, 0), tzinfo=timezone.utc)

    parsed = _parse_iso(text)  # ValueError on garbage
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_tz())
    return parsed


def to_local_datetime(value: Optional[DateLike]) -> datetime:
    """Firestore timestamp / datetime / date / ISO string -> aware datetime in BOT_TIMEZONE."""
    tz = local_tz()
    if value is None:
        return datetime.fromtimestamp(0, tz)
    if isinstance(value, str):
        try:
            value = to_storage_date(value)
        except ValueError:
            return datetime.fromtimestamp(0, tz)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value.astimezone(tz)
    if isinstance(value, date):
        return datetime.combine(value, time(0, 0), tzinfo=tz)
    return datetime.fromtimestamp(0, tz)


def to_local_date(value: Optional[DateLike]) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return to_local_datetime(value).date()


def same_local_day(a: DateLike, b: DateLike) -> bool:
    return to_local_date(a) == to_local_date(b)


def within_day_window(day: DateLike, center: DateLike, window_days: int = 1) -> bool:
    """True if `day` is within +/- window_days calendar days of `center` (inclusive)."""
    center_day = to_local_date(center)
    start = center_day - timedelta(days=window_days)
    end = center_day + timedelta(days=window_days)
    return start <= to_local_date(day) <= end


def format_meeting_date(value: Optional[DateLike]) -> str:
    """pt-BR display format, e.g. 27/02/2026, 09:00"""
    return to_local_datetime(value).strftime('%d/%m/%Y, %H:%M')
