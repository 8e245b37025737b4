"""Reminder service - Coach attendance reminders and parent absence notices"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import Settings
from ...email_templates import (
    format_long_date,
    format_session_time,
    render_coach_reminder,
    render_parent_absence,
)
from ...models import ReminderEmail
from ...shared.validators import is_deliverable_address
from ..mailer.providers import SmtpTransport, resolve_transport
from ..mailer.schemas import OutboundEmail
from ..mailer.sender import NewsletterSender
from ..scheduling.occurrences import org_now, org_today
from .gap_finder import AbsentStudent, AttendanceGapFinder, PendingSession
from .repository import ReminderRepository
from .schemas import EmailResult, ReminderDetail

logger = logging.getLogger(__name__)

NO_PENDING_SESSIONS = "No hay sesiones pendientes de asistencia para hoy"
NO_ABSENT_STUDENTS = "No students with missing attendance found for today"

COACH_REMINDER_TYPE = "coach reminder"
PARENT_NOTICE_TYPE = "parent absence notification"


class ReminderEmailService:
    """Service layer for the daily reminder runs"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        sender: NewsletterSender,
        gap_finder: Optional[AttendanceGapFinder] = None,
    ):
        self.db = db
        self.settings = settings
        self.sender = sender
        self.gap_finder = gap_finder or AttendanceGapFinder(db)
        self.repo = ReminderRepository()

    def _from_address(self, transport: SmtpTransport) -> str:
        return self.settings.reminder_from_address or transport.config.user

    def _save_history(self, type: str, recipient: str, content: str) -> None:
        try:
            self.repo.save_reminder_email(
                self.db,
                type=type,
                recipient=recipient,
                content=content,
                date=org_now().strftime("%Y-%m-%dT%H:%M:%S"),
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save reminder history for {recipient}: {e}")

    async def send_coach_reminders(self, today: Optional[date] = None) -> EmailResult:
        """
        Email every coach whose session today has no attendance yet.

        Raises:
            ConfigurationError: the default mail provider is not configured
        """
        result = EmailResult()
        today = today or org_today()

        try:
            pending = self.gap_finder.sessions_without_attendance(today)
        except Exception as e:
            logger.error(f"❌ [REMINDER] General error in reminder process: {e}")
            result.errors.append(f"General error in reminder process: {e}")
            return result

        if not pending:
            result.success = True
            result.errors.append(NO_PENDING_SESSIONS)
            return result

        transport = resolve_transport(None, self.settings)
        session_date = format_long_date(today)

        for item in pending:
            await self._send_coach_reminder(item, session_date, transport, result)

        result.success = result.sent > 0 and result.failed == 0
        logger.info(f"📧 [REMINDER] Coach reminders: {result.sent} sent, {result.failed} failed")
        return result

    async def _send_coach_reminder(
        self, item: PendingSession, session_date: str, transport: SmtpTransport, result: EmailResult
    ) -> None:
        coach, team, session = item.coach, item.team, item.session
        detail = ReminderDetail(coach=coach.name, team=team.name, email=coach.email, success=False)

        try:
            rendered = render_coach_reminder(
                coach_name=coach.name,
                team_name=team.name,
                session_date=session_date,
                session_time=format_session_time(session.starttime),
                session_end_time=format_session_time(session.endtime),
            )
            outcome = await self.sender.send(
                OutboundEmail(
                    to=coach.email,
                    subject=rendered.subject,
                    html=rendered.html,
                    text=rendered.text,
                    from_name=self.settings.reminder_from_name,
                    from_email=self._from_address(transport),
                ),
                transport=transport,
            )
        except Exception as e:
            result.failed += 1
            result.errors.append(f"Error processing session for {coach.name}: {e}")
            detail.error = str(e)
            result.details.append(detail)
            logger.error(f"❌ [REMINDER] Error processing session for {coach.name}: {e}")
            return

        if not outcome.success:
            result.failed += 1
            result.errors.append(f"Error sending email to {coach.name}: {outcome.error}")
            detail.error = outcome.error
            result.details.append(detail)
            return

        result.sent += 1
        detail.success = True
        result.details.append(detail)
        self._save_history(
            COACH_REMINDER_TYPE,
            coach.email,
            f"Reminder sent to {coach.name} to complete attendance for team {team.name} on {session_date}",
        )

    async def send_parent_absence_notifications(self, today: Optional[date] = None) -> EmailResult:
        """
        Email the parent of every student explicitly marked absent today.

        Raises:
            ConfigurationError: the default mail provider is not configured
        """
        result = EmailResult()
        today = today or org_today()

        try:
            absent = self.gap_finder.students_with_missing_attendance(today)
        except Exception as e:
            logger.error(f"❌ [REMINDER] General error in parent notification process: {e}")
            result.errors.append(f"General error in parent notification process: {e}")
            return result

        if not absent:
            result.success = True
            result.errors.append(NO_ABSENT_STUDENTS)
            return result

        transport = resolve_transport(None, self.settings)
        session_date = format_long_date(today)

        for item in absent:
            await self._send_parent_notice(item, session_date, transport, result)

        result.success = result.sent > 0 and result.failed == 0
        logger.info(f"📧 [REMINDER] Parent notices: {result.sent} sent, {result.failed} failed")
        return result

    async def _send_parent_notice(
        self, item: AbsentStudent, session_date: str, transport: SmtpTransport, result: EmailResult
    ) -> None:
        student, parent, team, session = item.student, item.parent, item.team, item.session
        parent_name = f"{parent.firstname} {parent.lastname}"
        student_name = f"{student.firstname} {student.lastname}"
        detail = ReminderDetail(
            coach=parent_name,
            team=f"{student_name} ({team.name})",
            email=parent.email or "",
            success=False,
        )

        if not is_deliverable_address(parent.email):
            result.failed += 1
            result.errors.append(f"Error sending absence notification to {parent_name}: no email address")
            detail.error = "No email address"
            result.details.append(detail)
            return

        try:
            rendered = render_parent_absence(
                parent_name=parent_name,
                student_name=student_name,
                team_name=team.name,
                session_date=session_date,
                session_time=format_session_time(session.starttime),
                session_end_time=format_session_time(session.endtime),
            )
            outcome = await self.sender.send(
                OutboundEmail(
                    to=parent.email,
                    subject=rendered.subject,
                    html=rendered.html,
                    text=rendered.text,
                    from_name=self.settings.reminder_from_name,
                    from_email=self._from_address(transport),
                ),
                transport=transport,
            )
        except Exception as e:
            result.failed += 1
            result.errors.append(f"Error processing absence notification for {student_name}: {e}")
            detail.error = str(e)
            result.details.append(detail)
            logger.error(f"❌ [REMINDER] Error processing absence notification for {student_name}: {e}")
            return

        if not outcome.success:
            result.failed += 1
            result.errors.append(f"Error sending absence notification to {parent_name}: {outcome.error}")
            detail.error = outcome.error
            result.details.append(detail)
            return

        result.sent += 1
        detail.success = True
        result.details.append(detail)
        self._save_history(
            PARENT_NOTICE_TYPE,
            parent.email,
            f"Absence notification sent to {parent_name} for {student_name} "
            f"in team {team.name} on {session_date}",
        )

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def get_pending_sessions(self, today: Optional[date] = None) -> list[PendingSession]:
        try:
            return self.gap_finder.sessions_without_attendance(today)
        except Exception as e:
            logger.error(f"❌ [REMINDER] Error fetching pending sessions: {e}")
            return []

    def get_students_with_missing_attendance(self, today: Optional[date] = None) -> list[AbsentStudent]:
        try:
            return self.gap_finder.students_with_missing_attendance(today)
        except Exception as e:
            logger.error(f"❌ [REMINDER] Error fetching students with missing attendance: {e}")
            return []

    def get_reminder_history(self, limit: Optional[int] = None) -> list[ReminderEmail]:
        try:
            return self.repo.get_reminder_history(self.db, limit=limit)
        except SQLAlchemyError as e:
            logger.error(f"❌ [REMINDER] Error fetching reminder history: {e}")
            return []
