"""
Today's schedule

Expands every session definition and keeps the occurrences that fall on the
organization's current calendar day, each tagged active / upcoming /
completed against the current instant.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, time, timezone
from typing import Optional

from ...models import TeamSession
from ..scheduling.occurrences import ORG_TZ, Occurrence, expand_occurrences
from .schemas import SessionStatus, TodaySession

logger = logging.getLogger(__name__)


def session_status(occurrence: Occurrence, now: datetime) -> SessionStatus:
    """Status of an occurrence at `now`; both ends of the window count as active"""
    # Compare in UTC: aware datetimes sharing a tzinfo compare by wall clock
    start = occurrence.start.astimezone(timezone.utc)
    end = occurrence.end.astimezone(timezone.utc)
    current = now.astimezone(timezone.utc)

    if start <= current <= end:
        return "active"
    if current < start:
        return "upcoming"
    return "completed"


def format_clock_time(value: Optional[time]) -> str:
    """6:00 PM"""
    if value is None:
        return ""
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{value.hour % 12 or 12}:{value.minute:02d} {suffix}"


def to_utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def todays_sessions(sessions: Iterable[TeamSession], now: datetime) -> list[TodaySession]:
    """
    Occurrences of `sessions` on today's date in the organization timezone,
    sorted by start instant. Sessions without a team or school are skipped,
    as are sessions whose schedule cannot be parsed.
    """
    now = now.astimezone(ORG_TZ)
    today = now.date()

    found: list[tuple[datetime, TodaySession]] = []
    for session in sessions:
        team = session.team
        if team is None or team.school is None:
            continue

        try:
            occurrences = expand_occurrences(session)
        except ValueError as e:
            logger.warning(f"⚠️ Skipping session {session.sessionid} with invalid schedule: {e}")
            continue

        for occurrence in occurrences:
            if occurrence.date != today:
                continue
            found.append(
                (
                    occurrence.start.astimezone(timezone.utc),
                    TodaySession(
                        sessionId=session.sessionid,
                        teamId=session.teamid,
                        teamName=team.name,
                        schoolName=team.school.name,
                        startTime=format_clock_time(session.starttime),
                        endTime=format_clock_time(session.endtime),
                        startDateTime=to_utc_iso(occurrence.start),
                        endDateTime=to_utc_iso(occurrence.end),
                        status=session_status(occurrence, now),
                    ),
                )
            )

    found.sort(key=lambda pair: pair[0])
    return [item for _, item in found]
