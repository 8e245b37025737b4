"""
Attendance gap finder

Finds today's sessions whose coach has not taken attendance, and students
explicitly marked absent today. "Today" is always the organization's local
date.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Parent, Staff, Student, Team, TeamSession
from ...shared.validators import is_deliverable_address
from ..scheduling.occurrences import occurs_on, org_today
from .repository import ReminderRepository

logger = logging.getLogger(__name__)


@dataclass
class PendingSession:
    session: TeamSession
    coach: Staff
    team: Team


@dataclass
class AbsentStudent:
    student: Student
    parent: Parent
    session: TeamSession
    team: Team


class AttendanceGapFinder:
    """Cross-references today's occurrences with attendance records"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReminderRepository()

    def sessions_occurring_on(self, day: date) -> list[TeamSession]:
        """Sessions with an occurrence on `day`. Storage errors propagate."""
        todays = []
        for session in self.repo.get_sessions(self.db):
            try:
                if occurs_on(session, day):
                    todays.append(session)
            except ValueError as e:
                logger.warning(f"⚠️ Skipping session {session.sessionid} with bad schedule: {e}")
        return todays

    def sessions_without_attendance(self, today: Optional[date] = None) -> list[PendingSession]:
        """
        Today's sessions that have no attendance record at all and whose
        coach has a deliverable email.

        Raises:
            SQLAlchemyError: the session or attendance fetch failed
        """
        today = today or org_today()
        pending: list[PendingSession] = []

        for session in self.sessions_occurring_on(today):
            if self.repo.has_session_attendance(self.db, session.sessionid, today):
                continue

            try:
                coach = self.repo.get_coach(self.db, session.coachid)
                team = self.repo.get_team(self.db, session.teamid)
            except SQLAlchemyError as e:
                logger.warning(f"⚠️ Could not load coach/team for session {session.sessionid}: {e}")
                continue

            if not coach or not team or not is_deliverable_address(coach.email):
                logger.info(f"Session {session.sessionid} has no reachable coach or team, skipping")
                continue

            pending.append(PendingSession(session=session, coach=coach, team=team))

        logger.info(f"📋 {len(pending)} sessions pending attendance for {today.isoformat()}")
        return pending

    def students_with_missing_attendance(self, today: Optional[date] = None) -> list[AbsentStudent]:
        """
        Students of today's sessions whose attendance mark exists and says
        assisted = false. A student with no mark yet is never included.

        Raises:
            SQLAlchemyError: the session or attendance fetch failed
        """
        today = today or org_today()
        absent: list[AbsentStudent] = []

        for session in self.sessions_occurring_on(today):
            try:
                enrollments = self.repo.get_active_enrollments(self.db, session.teamid)
                team = self.repo.get_team(self.db, session.teamid)
            except SQLAlchemyError as e:
                logger.warning(f"⚠️ Could not load roster for session {session.sessionid}: {e}")
                continue

            if not enrollments or not team:
                continue

            students = [
                e.student for e in enrollments if e.student is not None and e.student.parent is not None
            ]
            marks = self.repo.get_student_attendance(
                self.db, session.sessionid, [s.studentid for s in students], today
            )

            for student in students:
                mark = marks.get(student.studentid)
                if mark is None or mark.assisted:
                    continue
                absent.append(
                    AbsentStudent(student=student, parent=student.parent, session=session, team=team)
                )

        logger.info(f"📋 {len(absent)} students marked absent for {today.isoformat()}")
        return absent
