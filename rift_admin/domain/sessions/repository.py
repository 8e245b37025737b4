"""Session repository - Database operations for today's schedule and session rosters"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Enrollment, Student, Team, TeamSession


class SessionRepository:
    """Repository for session definitions and their enrolled students"""

    @staticmethod
    def get_sessions_with_team(db: Session) -> list[TeamSession]:
        """Every session definition with its team and school loaded"""
        return (
            db.query(TeamSession)
            .options(joinedload(TeamSession.team).joinedload(Team.school))
            .all()
        )

    @staticmethod
    def get_session(db: Session, session_id: str) -> Optional[TeamSession]:
        return db.query(TeamSession).filter(TeamSession.sessionid == session_id).first()

    @staticmethod
    def get_active_enrollment_counts(db: Session, team_ids: list[str]) -> dict[str, int]:
        """Number of active enrollments per team id"""
        if not team_ids:
            return {}
        rows = (
            db.query(Enrollment.teamid, func.count(Enrollment.enrollmentid))
            .filter(Enrollment.teamid.in_(team_ids), Enrollment.isactive.is_(True))
            .group_by(Enrollment.teamid)
            .all()
        )
        return {team_id: count for team_id, count in rows}

    @staticmethod
    def get_active_students(db: Session, team_id: str) -> list[Student]:
        """Students actively enrolled in the team, by last name"""
        return (
            db.query(Student)
            .join(Enrollment, Enrollment.studentid == Student.studentid)
            .filter(Enrollment.teamid == team_id, Enrollment.isactive.is_(True))
            .order_by(Student.lastname.asc(), Student.firstname.asc())
            .all()
        )
