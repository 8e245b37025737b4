"""Reminder repository - Database operations for the attendance reminder pipeline"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Assistance,
    Enrollment,
    ReminderEmail,
    Staff,
    Student,
    Team,
    TeamSession,
)


class ReminderRepository:
    """Repository for sessions, attendance, rosters and reminder history"""

    @staticmethod
    def get_sessions(db: Session) -> list[TeamSession]:
        """Get every session definition"""
        return db.query(TeamSession).all()

    @staticmethod
    def has_session_attendance(db: Session, session_id: str, day: date) -> bool:
        """Whether any attendance record exists for (session, day)"""
        return (
            db.query(Assistance.id)
            .filter(Assistance.sessionid == session_id, Assistance.date == day)
            .first()
            is not None
        )

    @staticmethod
    def get_coach(db: Session, coach_id: Optional[str]) -> Optional[Staff]:
        if not coach_id:
            return None
        return db.query(Staff).filter(Staff.id == coach_id).first()

    @staticmethod
    def get_team(db: Session, team_id: str) -> Optional[Team]:
        return db.query(Team).filter(Team.teamid == team_id).first()

    @staticmethod
    def get_active_enrollments(db: Session, team_id: str) -> list[Enrollment]:
        """Active enrollments for a team, with student and parent loaded"""
        return (
            db.query(Enrollment)
            .options(joinedload(Enrollment.student).joinedload(Student.parent))
            .filter(Enrollment.teamid == team_id, Enrollment.isactive.is_(True))
            .all()
        )

    @staticmethod
    def get_student_attendance(
        db: Session, session_id: str, student_ids: list[str], day: date
    ) -> dict[str, Assistance]:
        """Per-student attendance marks for (session, day), keyed by student id"""
        if not student_ids:
            return {}
        rows = (
            db.query(Assistance)
            .filter(
                Assistance.sessionid == session_id,
                Assistance.date == day,
                Assistance.studentid.in_(student_ids),
            )
            .all()
        )
        marks: dict[str, Assistance] = {}
        for row in rows:
            # a student marked present on any row counts as present
            if row.studentid not in marks or row.assisted:
                marks[row.studentid] = row
        return marks

    @staticmethod
    def save_reminder_email(db: Session, type: str, recipient: str, content: str, date: str) -> ReminderEmail:
        """Append a history row"""
        record = ReminderEmail(type=type, recipient=recipient, content=content, date=date)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def get_reminder_history(db: Session, limit: Optional[int] = None) -> list[ReminderEmail]:
        """History rows, newest first"""
        query = db.query(ReminderEmail).order_by(ReminderEmail.date.desc(), ReminderEmail.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()
