"""
Recurring session occurrence expansion

Turns a session's recurrence rule (date range, days of week, cancelled dates,
wall-clock start/end) into concrete timezone-aware occurrences. Pure functions,
no storage access, so the same expansion serves calendar, roster and reminder
callers.
"""

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ...config import ORG_TIMEZONE

logger = logging.getLogger(__name__)

ORG_TZ = ZoneInfo(ORG_TIMEZONE)

# ISO weekday numbers: 1 = Monday ... 7 = Sunday
_DAY_TOKENS = {
    # English
    "mon": 1, "monday": 1, "m": 1,
    "tue": 2, "tuesday": 2, "tu": 2,
    "wed": 3, "wednesday": 3, "w": 3,
    "thu": 4, "thursday": 4, "th": 4,
    "fri": 5, "friday": 5, "f": 5,
    "sat": 6, "saturday": 6, "sa": 6,
    "sun": 7, "sunday": 7, "su": 7,
    # Spanish
    "lun": 1, "lunes": 1,
    "mar": 2, "martes": 2,
    "mie": 3, "mié": 3, "miercoles": 3, "miércoles": 3,
    "jue": 4, "jueves": 4,
    "vie": 5, "viernes": 5,
    "sab": 6, "sáb": 6, "sabado": 6, "sábado": 6,
    "dom": 7, "domingo": 7,
    # Numeric (both 0 and 7 mean Sunday)
    "0": 7, "1": 1, "2": 2, "3": 3, "4": 4, "5": 5, "6": 6, "7": 7,
}

_SHORT_NAMES_ES = {1: "Lun", 2: "Mar", 3: "Mié", 4: "Jue", 5: "Vie", 6: "Sáb", 7: "Dom"}
_DAY_NAMES_EN = {
    1: "monday",
    2: "tuesday",
    3: "wednesday",
    4: "thursday",
    5: "friday",
    6: "saturday",
    7: "sunday",
}

_TOKEN_SPLIT = re.compile(r"[\s,;|/]+")


@dataclass(frozen=True)
class Occurrence:
    """One concrete calendar instance of a recurring session"""

    start: datetime
    end: datetime
    ymd: str  # YYYYMMDD

    @property
    def date(self) -> date:
        return self.start.date()


@dataclass(frozen=True)
class RecurrenceRule:
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    days_of_week: frozenset[int]
    cancelled: frozenset[date]

    @classmethod
    def from_session(cls, session: Any) -> "RecurrenceRule":
        """
        Build a rule from a TeamSession row, a dict, or anything exposing
        startdate/enddate/starttime/endtime/daysofweek/cancel.
        """
        start_date = _coerce_date(_field(session, "startdate"))
        if start_date is None:
            raise ValueError("Session has no startdate")
        end_date = _coerce_date(_field(session, "enddate")) or start_date

        return cls(
            start_date=start_date,
            end_date=end_date,
            start_time=_coerce_time(_field(session, "starttime")),
            end_time=_coerce_time(_field(session, "endtime")),
            days_of_week=frozenset(parse_days_of_week(_field(session, "daysofweek") or "")),
            cancelled=frozenset(parse_cancelled_dates(_field(session, "cancel") or "")),
        )

    def includes(self, day: date) -> bool:
        """Whether `day` produces an occurrence under this rule"""
        return (
            self.start_date <= day <= self.end_date
            and day.isoweekday() in self.days_of_week
            and day not in self.cancelled
        )

    def occurrence_for(self, day: date) -> Occurrence:
        return Occurrence(
            start=datetime.combine(day, self.start_time, tzinfo=ORG_TZ),
            end=datetime.combine(day, self.end_time, tzinfo=ORG_TZ),
            ymd=day.strftime("%Y%m%d"),
        )


def _field(session: Any, name: str) -> Any:
    if isinstance(session, Mapping):
        return session.get(name)
    return getattr(session, name, None)


def _coerce_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _coerce_time(value: Any) -> time:
    if value is None or value == "":
        return time(0, 0)
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    parts = str(value).strip().split(":")
    hour = int(parts[0]) if parts[0] else 0
    minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return time(hour, minute)


def parse_days_of_week(text: str) -> list[int]:
    """
    Parse a free-text days-of-week field into ISO weekday numbers.

    Accepts English/Spanish names and abbreviations and digits, separated by
    whitespace, commas, semicolons, pipes or slashes. Case-insensitive;
    unknown tokens are ignored and duplicates dropped (first-seen order kept).
    """
    if not text:
        return []

    days: list[int] = []
    for token in _TOKEN_SPLIT.split(text):
        day = _DAY_TOKENS.get(token.strip().lower())
        if day and day not in days:
            days.append(day)
    return days


def parse_cancelled_dates(text: str) -> set[date]:
    """Parse the comma separated cancel column (YYYY-MM-DD or YYYYMMDD)"""
    cancelled: set[date] = set()
    if not text:
        return cancelled

    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            if len(token) == 8 and token.isdigit():
                cancelled.add(datetime.strptime(token, "%Y%m%d").date())
            else:
                cancelled.add(date.fromisoformat(token[:10]))
        except ValueError:
            logger.debug(f"Ignoring unparseable cancel date: {token!r}")
    return cancelled


def iter_occurrences(session: Any) -> Iterator[Occurrence]:
    """
    Lazily yield a session's occurrences in ascending date order.

    Every yielded date lies within [startdate, enddate], falls on one of the
    session's days of week and is not in the cancel list. Each call starts
    a fresh iteration.
    """
    rule = session if isinstance(session, RecurrenceRule) else RecurrenceRule.from_session(session)

    if rule.start_time > rule.end_time:
        # No overnight rollover: the occurrence keeps the same calendar day
        logger.warning(
            f"⚠️ Session starts after it ends ({rule.start_time} > {rule.end_time}); "
            "keeping same-day start/end"
        )

    if not rule.days_of_week:
        return

    day = rule.start_date
    while day <= rule.end_date:
        if rule.includes(day):
            yield rule.occurrence_for(day)
        day += timedelta(days=1)


def expand_occurrences(session: Any) -> list[Occurrence]:
    """Materialize all occurrences of a session"""
    return list(iter_occurrences(session))


def occurs_on(session: Any, day: date) -> bool:
    """Whether the session has an occurrence on `day`"""
    rule = session if isinstance(session, RecurrenceRule) else RecurrenceRule.from_session(session)
    return rule.includes(day)


def org_now() -> datetime:
    """Current instant in the organization's timezone"""
    return datetime.now(ORG_TZ)


def org_today() -> date:
    """Today's date in the organization's timezone, regardless of server locale"""
    return org_now().date()


def format_days_of_week(text: str) -> str:
    """Short Spanish display names, e.g. 'Lun, Mié'"""
    return ", ".join(_SHORT_NAMES_ES[day] for day in parse_days_of_week(text))


def validate_days_of_week(text: str) -> bool:
    if not text or not text.strip():
        return False
    return len(parse_days_of_week(text)) > 0


def days_array_to_string(days: list[int]) -> str:
    """Inverse of parse_days_of_week for storage: [1, 3] -> 'monday,wednesday'"""
    return ",".join(_DAY_NAMES_EN[day] for day in days if day in _DAY_NAMES_EN)
