"""Reminder router - FastAPI endpoints for attendance reminders and absence notices"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import get_db
from ...dependencies import get_app_settings, get_newsletter_sender
from ..mailer.sender import NewsletterSender
from .gap_finder import AbsentStudent, PendingSession
from .schemas import (
    AbsentStudentResponse,
    EmailResult,
    PendingSessionResponse,
    ReminderHistoryResponse,
)
from .service import ReminderEmailService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reminders", tags=["Reminders"])


def get_reminder_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    sender: NewsletterSender = Depends(get_newsletter_sender),
) -> ReminderEmailService:
    """Dependency injection for ReminderEmailService"""
    return ReminderEmailService(db, settings, sender)


def _pending_session_response(item: PendingSession) -> dict:
    session = item.session
    return PendingSessionResponse(
        sessionId=session.sessionid,
        teamId=session.teamid,
        teamName=item.team.name,
        coachName=item.coach.name,
        coachEmail=item.coach.email,
        startTime=session.starttime.strftime("%H:%M") if session.starttime else None,
        endTime=session.endtime.strftime("%H:%M") if session.endtime else None,
    ).model_dump()


def _absent_student_response(item: AbsentStudent) -> dict:
    return AbsentStudentResponse(
        sessionId=item.session.sessionid,
        studentId=item.student.studentid,
        studentName=f"{item.student.firstname} {item.student.lastname}",
        parentName=f"{item.parent.firstname} {item.parent.lastname}",
        parentEmail=item.parent.email,
        teamName=item.team.name,
    ).model_dump()


def _history(service: ReminderEmailService) -> list[dict]:
    return [ReminderHistoryResponse.model_validate(r).model_dump() for r in service.get_reminder_history()]


def _run_response(result: EmailResult, success_message: str) -> JSONResponse:
    message = (
        success_message.format(sent=result.sent)
        if result.success
        else f"Process completed with errors. {result.sent} sent, {result.failed} failed."
    )
    return JSONResponse(
        status_code=200 if result.success else 207,
        content={
            "success": result.success,
            "message": message,
            "data": {
                "sent": result.sent,
                "failed": result.failed,
                "errors": result.errors,
                "details": [d.model_dump() for d in result.details],
            },
        },
    )


def _error_response(e: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "message": str(e)},
    )


@router.post("/send")
async def send_coach_reminders(service: ReminderEmailService = Depends(get_reminder_service)):
    """Email coaches of today's sessions that have no attendance yet"""
    logger.info("📧 [API] Starting reminder sending process...")
    try:
        result = await service.send_coach_reminders()
    except Exception as e:
        logger.error(f"❌ [API] Error in reminder sending: {e}")
        return _error_response(e)

    logger.info(
        f"[API] Reminder process completed: success={result.success}, "
        f"sent={result.sent}, failed={result.failed}"
    )
    return _run_response(result, "Reminders sent successfully. {sent} emails sent.")


@router.get("/send")
async def get_reminder_overview(service: ReminderEmailService = Depends(get_reminder_service)):
    """Preview pending sessions, absent students and the send history"""
    try:
        return {
            "success": True,
            "data": {
                "pendingSessions": [_pending_session_response(p) for p in service.get_pending_sessions()],
                "studentsWithMissingAttendance": [
                    _absent_student_response(a) for a in service.get_students_with_missing_attendance()
                ],
                "history": _history(service),
            },
        }
    except Exception as e:
        logger.error(f"❌ [API] Error fetching reminder data: {e}")
        return _error_response(e)


@router.post("/send-parent-notifications")
async def send_parent_notifications(service: ReminderEmailService = Depends(get_reminder_service)):
    """Email parents of students marked absent today"""
    logger.info("📧 [API] Starting parent notification process...")
    try:
        result = await service.send_parent_absence_notifications()
    except Exception as e:
        logger.error(f"❌ [API] Error in parent notification sending: {e}")
        return _error_response(e)

    return _run_response(result, "Parent notifications sent successfully. {sent} emails sent.")


@router.get("/send-parent-notifications")
async def get_parent_notification_overview(
    service: ReminderEmailService = Depends(get_reminder_service),
):
    """Preview absent students and the send history"""
    try:
        return {
            "success": True,
            "data": {
                "studentsWithMissingAttendance": [
                    _absent_student_response(a) for a in service.get_students_with_missing_attendance()
                ],
                "history": _history(service),
            },
        }
    except Exception as e:
        logger.error(f"❌ [API] Error fetching parent notification data: {e}")
        return _error_response(e)
