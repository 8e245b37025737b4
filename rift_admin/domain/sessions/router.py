"""Sessions router - today's practice schedule and per-session rosters"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import get_db
from ..scheduling.occurrences import org_now
from .repository import SessionRepository
from .schemas import SessionStudent
from .service import todays_sessions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions-today", tags=["Sessions"])


def _error_response(error: str, e: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": str(e)})


@router.get("")
async def get_todays_sessions(db: Session = Depends(get_db)):
    """Sessions happening today with their status and active enrollment count"""
    try:
        sessions = SessionRepository.get_sessions_with_team(db)
    except SQLAlchemyError as e:
        logger.error(f"❌ [API] Error fetching sessions: {e}")
        return _error_response("Failed to fetch today's sessions", e)

    today = todays_sessions(sessions, org_now())

    counts: dict[str, int] = {}
    team_ids = sorted({item.teamId for item in today})
    try:
        counts = SessionRepository.get_active_enrollment_counts(db, team_ids)
    except SQLAlchemyError as e:
        # Counts are informational; the schedule is still returned
        logger.error(f"❌ [API] Error fetching enrollment counts: {e}")

    for item in today:
        item.studentCount = counts.get(item.teamId, 0)

    logger.info(f"📅 [API] {len(today)} sessions today")
    return {"sessions": [item.model_dump() for item in today]}


@router.get("/{session_id}/students")
async def get_session_students(session_id: str, db: Session = Depends(get_db)):
    """Students actively enrolled in the session's team"""
    try:
        session = SessionRepository.get_session(db, session_id)
        if session is None:
            return _error_response("Failed to fetch students", LookupError("Session not found"), 404)
        students = SessionRepository.get_active_students(db, session.teamid)
    except SQLAlchemyError as e:
        logger.error(f"❌ [API] Error fetching students for session {session_id}: {e}")
        return _error_response("Failed to fetch students", e)

    return {
        "students": [
            SessionStudent(
                studentId=s.studentid,
                firstName=s.firstname,
                lastName=s.lastname,
                grade=s.grade,
                level=s.level,
            ).model_dump()
            for s in students
        ]
    }
