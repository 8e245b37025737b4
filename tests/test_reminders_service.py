# type: ignore
"""Tests for the coach reminder and parent absence runs"""
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from rift_admin import models
from rift_admin.domain.mailer.sender import NewsletterSender
from rift_admin.domain.reminders.gap_finder import PendingSession
from rift_admin.domain.reminders.service import (
    COACH_REMINDER_TYPE,
    NO_ABSENT_STUDENTS,
    NO_PENDING_SESSIONS,
    PARENT_NOTICE_TYPE,
    ReminderEmailService,
)

from conftest import FakeSleep, FakeTransport

MONDAY = date(2025, 1, 6)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def service(db, settings, token_service, transport):
    sender = NewsletterSender(settings, token_service, sleep=FakeSleep())
    with patch("rift_admin.domain.reminders.service.resolve_transport", return_value=transport):
        yield ReminderEmailService(db, settings, sender)


def _add_session(db, n, coach_email):
    db.add(models.Staff(id=f"coach-{n}", name=f"Coach {n}", email=coach_email))
    db.add(models.Team(teamid=f"team-{n}", name=f"Team {n}"))
    db.add(
        models.TeamSession(
            sessionid=f"session-{n}",
            teamid=f"team-{n}",
            startdate=MONDAY,
            enddate=MONDAY,
            daysofweek="monday",
            coachid=f"coach-{n}",
        )
    )
    db.commit()


class TestCoachReminders:
    @pytest.mark.asyncio
    async def test_nothing_pending(self, db, roster, service, transport):
        result = await service.send_coach_reminders(date(2025, 1, 7))
        assert result.success is True
        assert result.sent == 0
        assert result.errors == [NO_PENDING_SESSIONS]
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_reminder_sent_and_logged(self, db, roster, service, transport):
        result = await service.send_coach_reminders(MONDAY)

        assert result.success is True
        assert result.sent == 1
        assert result.details[0].coach == "Carla Coach"
        assert result.details[0].team == "Volley U10"
        assert result.details[0].success is True

        msg = transport.sent[0]
        assert msg["To"] == "carla@disciplinerift.com"
        assert msg["Subject"] == "Reminder to complete attendance for Volley U10 group"
        assert "reminders@disciplinerift.com" in msg["From"]

        history = db.query(models.ReminderEmail).all()
        assert len(history) == 1
        assert history[0].type == COACH_REMINDER_TYPE
        assert history[0].recipient == "carla@disciplinerift.com"
        assert "Monday, January 6, 2025" in history[0].content

    @pytest.mark.asyncio
    async def test_partial_failure(self, db, roster, service, transport):
        _add_session(db, 2, "coach2@disciplinerift.com")
        _add_session(db, 3, "coach3@disciplinerift.com")
        transport.outcomes["coach2@disciplinerift.com"] = [ConnectionResetError("reset")] * 10

        result = await service.send_coach_reminders(MONDAY)

        assert result.sent == 2
        assert result.failed == 1
        assert result.success is False
        assert any("Coach 2" in e and "reset" in e for e in result.errors)
        history = db.query(models.ReminderEmail).all()
        assert len(history) == 2
        assert {h.type for h in history} == {COACH_REMINDER_TYPE}
        assert "coach2@disciplinerift.com" not in {h.recipient for h in history}

    @pytest.mark.asyncio
    async def test_general_error_is_reported(self, db, settings):
        gap_finder = MagicMock()
        gap_finder.sessions_without_attendance.side_effect = RuntimeError("db down")
        service = ReminderEmailService(db, settings, MagicMock(), gap_finder=gap_finder)

        result = await service.send_coach_reminders(MONDAY)
        assert result.success is False
        assert result.errors == ["General error in reminder process: db down"]

    @pytest.mark.asyncio
    async def test_rendering_error_counts_as_failure(self, db, roster, service):
        with patch(
            "rift_admin.domain.reminders.service.render_coach_reminder", side_effect=ValueError("bad template")
        ):
            result = await service.send_coach_reminders(MONDAY)
        assert result.failed == 1
        assert result.details[0].error == "bad template"


class TestParentNotifications:
    @pytest.mark.asyncio
    async def test_nobody_absent(self, db, roster, service):
        result = await service.send_parent_absence_notifications(MONDAY)
        assert result.success is True
        assert result.errors == [NO_ABSENT_STUDENTS]

    @pytest.mark.asyncio
    async def test_absent_student_parent_notified(self, db, roster, service, transport):
        db.add(models.Assistance(sessionid="session-1", studentid="student-2", date=MONDAY, assisted=False))
        db.add(models.Assistance(sessionid="session-1", studentid="student-1", date=MONDAY, assisted=True))
        db.commit()

        result = await service.send_parent_absence_notifications(MONDAY)

        assert result.success is True
        assert result.sent == 1
        assert [m["To"] for m in transport.sent] == ["parent2@example.com"]
        assert transport.sent[0]["Subject"] == "Absence Notification - Sam2 Student (Volley U10)"
        assert result.details[0].coach == "Pat2 Parent"
        assert result.details[0].team == "Sam2 Student (Volley U10)"

        history = db.query(models.ReminderEmail).one()
        assert history.type == PARENT_NOTICE_TYPE
        assert history.recipient == "parent2@example.com"

    @pytest.mark.asyncio
    async def test_parent_without_email_is_a_failure(self, db, roster, service, transport):
        roster["parents"][0].email = None
        db.add(models.Assistance(sessionid="session-1", studentid="student-1", date=MONDAY, assisted=False))
        db.commit()

        result = await service.send_parent_absence_notifications(MONDAY)
        assert result.failed == 1
        assert result.details[0].error == "No email address"
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_general_error_is_reported(self, db, settings):
        gap_finder = MagicMock()
        gap_finder.students_with_missing_attendance.side_effect = RuntimeError("timeout")
        service = ReminderEmailService(db, settings, MagicMock(), gap_finder=gap_finder)

        result = await service.send_parent_absence_notifications(MONDAY)
        assert result.errors == ["General error in parent notification process: timeout"]


class TestPreviews:
    def test_preview_errors_return_empty_lists(self, db, settings):
        gap_finder = MagicMock()
        gap_finder.sessions_without_attendance.side_effect = RuntimeError("boom")
        gap_finder.students_with_missing_attendance.side_effect = RuntimeError("boom")
        service = ReminderEmailService(db, settings, MagicMock(), gap_finder=gap_finder)
        assert service.get_pending_sessions(MONDAY) == []
        assert service.get_students_with_missing_attendance(MONDAY) == []

    def test_pending_sessions_passthrough(self, db, settings):
        gap_finder = MagicMock()
        pending = [PendingSession(session=MagicMock(), coach=MagicMock(), team=MagicMock())]
        gap_finder.sessions_without_attendance.return_value = pending
        service = ReminderEmailService(db, settings, MagicMock(), gap_finder=gap_finder)
        assert service.get_pending_sessions(MONDAY) is pending
