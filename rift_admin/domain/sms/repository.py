"""SMS repository - roster lookups for team text campaigns"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Enrollment, Parent, Staff, Student, Team, TeamSession


class SmsRepository:
    """Repository for team, coach and parent lookups"""

    @staticmethod
    def get_team(db: Session, team_id: str) -> Optional[Team]:
        return (
            db.query(Team)
            .options(joinedload(Team.school))
            .filter(Team.teamid == team_id)
            .first()
        )

    @staticmethod
    def get_team_coach(db: Session, team_id: str) -> Optional[Staff]:
        """Coach of the team's first session that has one"""
        return (
            db.query(Staff)
            .join(TeamSession, TeamSession.coachid == Staff.id)
            .filter(TeamSession.teamid == team_id)
            .first()
        )

    @staticmethod
    def get_enrollments_for_parents(db: Session, team_id: str, parent_ids: list[str]) -> list[Enrollment]:
        """Active enrollments of the team whose student belongs to one of `parent_ids`"""
        if not parent_ids:
            return []
        return (
            db.query(Enrollment)
            .join(Student, Enrollment.studentid == Student.studentid)
            .join(Parent, Student.parentid == Parent.parentid)
            .options(joinedload(Enrollment.student).joinedload(Student.parent))
            .filter(
                Enrollment.teamid == team_id,
                Enrollment.isactive.is_(True),
                Parent.parentid.in_(parent_ids),
            )
            .all()
        )
