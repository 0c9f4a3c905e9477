"""
Natural-language date interpretation for transaction input.

``interpret_date`` never raises: anything it cannot make sense of resolves to
the current moment. Forms are tried in this order, first match wins:

* ``15-03-2024`` / ``15/03/24`` (day first, two-digit years are 20YY)
* ``2024-03-15`` / ``2024/03/15``
* ``today``, ``yesterday``
* ``3 days ago``, ``2 weeks ago``, ``1 month ago``, ``1 year ago``
* ``last friday`` (strictly before today)
* ``friday`` (most recent, today included)
* anything ``dateutil`` can parse
"""

import re
from datetime import datetime, timedelta

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

from finance_tracker.logger import get_logger
from finance_tracker.models import to_local_naive

logger = get_logger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_DAY_FIRST = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})$")
_RELATIVE = re.compile(r"^(\d+)\s+(day|week|month|year)s?\s+ago$")
_LAST_WEEKDAY = re.compile(r"^last\s+([a-z]+)$")


def _calendar_date(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _relative(now: datetime, count: str, unit: str) -> datetime | None:
    try:
        amount = int(count)
        return now - relativedelta(**{f"{unit}s": amount})
    except (OverflowError, ValueError):
        return None


def _weekday_back(now: datetime, weekday: int, *, strictly_before: bool) -> datetime:
    diff = (now.weekday() - weekday) % 7
    if strictly_before and diff == 0:
        diff = 7
    return now - timedelta(days=diff)


def _fallback(text: str, now: datetime) -> datetime:
    try:
        parsed = dateutil_parser.parse(text, default=now.replace(hour=0, minute=0, second=0, microsecond=0))
        return to_local_naive(parsed) or now
    except (ValueError, OverflowError, TypeError):
        logger.debug("[DATES] Could not interpret '%s'; using now.", text)
        return now


def interpret_date(text: object, now: datetime | None = None) -> datetime:
    now = now or datetime.now()
    if text is None:
        return now
    s = str(text).strip().lower()
    if not s:
        return now

    match = _DAY_FIRST.match(s)
    if match:
        day, month, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000
        result = _calendar_date(year, month, day)
        if result:
            return result

    match = _YEAR_FIRST.match(s)
    if match:
        year, month, day = (int(part) for part in match.groups())
        result = _calendar_date(year, month, day)
        if result:
            return result

    if s == "today":
        return now
    if s == "yesterday":
        return now - timedelta(days=1)

    match = _RELATIVE.match(s)
    if match:
        result = _relative(now, match.group(1), match.group(2))
        return result or now

    match = _LAST_WEEKDAY.match(s)
    if match and match.group(1) in WEEKDAYS:
        return _weekday_back(now, WEEKDAYS.index(match.group(1)), strictly_before=True)

    if s in WEEKDAYS:
        return _weekday_back(now, WEEKDAYS.index(s), strictly_before=False)

    return _fallback(s, now)
