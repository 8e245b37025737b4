# type: ignore
"""Tests for today's session schedule and the session roster endpoint"""
from datetime import date, datetime, time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from rift_admin import models
from rift_admin.database import get_db
from rift_admin.domain.scheduling.occurrences import ORG_TZ
from rift_admin.domain.sessions.repository import SessionRepository
from rift_admin.domain.sessions.service import format_clock_time, todays_sessions
from rift_admin.main import app

client = TestClient(app, raise_server_exceptions=False)


def _make_session(sessionid="s-1", start=time(18, 0), end=time(19, 0), days="sunday", day=date(2025, 3, 9), school=True):
    team = models.Team(
        teamid=f"team-{sessionid}",
        name=f"Team {sessionid}",
        school=models.School(schoolid=1, name="Lincoln Elementary") if school else None,
    )
    return models.TeamSession(
        sessionid=sessionid,
        teamid=team.teamid,
        startdate=day,
        enddate=day,
        starttime=start,
        endtime=end,
        daysofweek=days,
        cancel="",
        team=team,
    )


class TestFormatClockTime:
    @pytest.mark.parametrize(
        "value, expected",
        [(time(18, 0), "6:00 PM"), (time(0, 5), "12:05 AM"), (time(12, 30), "12:30 PM"), (None, "")],
    )
    def test_format(self, value, expected):
        assert format_clock_time(value) == expected


class TestTodaysSessions:
    def test_status_against_now(self):
        sessions = [
            _make_session("morning", time(8, 0), time(9, 0)),
            _make_session("noon", time(12, 0), time(13, 0)),
            _make_session("evening", time(18, 0), time(19, 0)),
        ]
        now = datetime(2025, 3, 9, 12, 0, tzinfo=ORG_TZ)
        result = todays_sessions(sessions, now)
        assert [(s.sessionId, s.status) for s in result] == [
            ("morning", "completed"),
            ("noon", "active"),
            ("evening", "upcoming"),
        ]

    def test_sorted_by_start_instant(self):
        sessions = [_make_session("late", time(17, 0), time(18, 0)), _make_session("early", time(7, 0), time(8, 0))]
        result = todays_sessions(sessions, datetime(2025, 3, 9, 6, 0, tzinfo=ORG_TZ))
        assert [s.sessionId for s in result] == ["early", "late"]

    def test_other_days_and_schoolless_teams_are_skipped(self):
        sessions = [
            _make_session("monday-only", days="monday"),
            _make_session("no-school", school=False),
            _make_session("today"),
        ]
        result = todays_sessions(sessions, datetime(2025, 3, 9, 10, 0, tzinfo=ORG_TZ))
        assert [s.sessionId for s in result] == ["today"]

    def test_invalid_schedule_is_skipped(self, caplog):
        broken = _make_session("broken", start="not-a-time")
        result = todays_sessions([broken, _make_session("ok")], datetime(2025, 3, 9, 10, 0, tzinfo=ORG_TZ))
        assert [s.sessionId for s in result] == ["ok"]
        assert "broken" in caplog.text

    def test_session_spanning_spring_forward(self):
        # 2025-03-09: clocks jump from 02:00 EST to 03:00 EDT
        session = _make_session("dst", time(1, 0), time(4, 0))
        now = datetime(2025, 3, 9, 3, 30, tzinfo=ORG_TZ)
        (item,) = todays_sessions([session], now)
        assert item.startDateTime == "2025-03-09T06:00:00Z"
        assert item.endDateTime == "2025-03-09T08:00:00Z"
        assert item.startTime == "1:00 AM"
        assert item.status == "active"

    def test_repeated_hour_at_fall_back_uses_real_instants(self):
        # 2025-11-02: 01:00-02:00 happens twice; fold=1 is the second (EST) pass
        session = _make_session("fallback", time(0, 30), time(1, 30), day=date(2025, 11, 2))
        now = datetime(2025, 11, 2, 1, 15, fold=1, tzinfo=ORG_TZ)
        (item,) = todays_sessions([session], now)
        assert item.endDateTime == "2025-11-02T05:30:00Z"
        assert item.status == "completed"

    def test_now_in_another_zone_uses_org_calendar_day(self):
        # 02:00 UTC on Monday is still Sunday evening in New York
        utc_now = datetime.fromisoformat("2025-03-10T02:00:00+00:00")
        result = todays_sessions([_make_session("sunday-night", time(21, 0), time(23, 0))], utc_now)
        assert [(s.sessionId, s.status) for s in result] == [("sunday-night", "active")]


class TestSessionsTodayEndpoint:
    @pytest.fixture(autouse=True)
    def overrides(self, db):
        app.dependency_overrides[get_db] = lambda: db
        yield
        app.dependency_overrides.clear()

    def _get(self, now):
        with patch("rift_admin.domain.sessions.router.org_now", return_value=now):
            return client.get("/api/sessions-today")

    def test_lists_todays_session_with_counts(self, db, roster):
        db.query(models.Enrollment).filter(models.Enrollment.enrollmentid == "enr-3").update({"isactive": False})
        db.commit()

        response = self._get(datetime(2025, 1, 13, 18, 30, tzinfo=ORG_TZ))
        assert response.status_code == 200
        assert response.json() == {
            "sessions": [
                {
                    "sessionId": "session-1",
                    "teamId": "team-1",
                    "teamName": "Volley U10",
                    "schoolName": "Lincoln Elementary",
                    "startTime": "6:00 PM",
                    "endTime": "7:00 PM",
                    "startDateTime": "2025-01-13T23:00:00Z",
                    "endDateTime": "2025-01-14T00:00:00Z",
                    "studentCount": 2,
                    "status": "active",
                }
            ]
        }

    def test_no_sessions_on_a_non_practice_day(self, roster):
        response = self._get(datetime(2025, 1, 14, 18, 30, tzinfo=ORG_TZ))
        assert response.status_code == 200
        assert response.json() == {"sessions": []}

    def test_enrollment_count_failure_still_returns_schedule(self, roster):
        error = OperationalError("SELECT", {}, Exception("db down"))
        with patch.object(SessionRepository, "get_active_enrollment_counts", side_effect=error):
            response = self._get(datetime(2025, 1, 13, 17, 0, tzinfo=ORG_TZ))
        assert response.status_code == 200
        session = response.json()["sessions"][0]
        assert session["studentCount"] == 0
        assert session["status"] == "upcoming"

    def test_session_fetch_failure_returns_500(self):
        error = OperationalError("SELECT", {}, Exception("db down"))
        with patch.object(SessionRepository, "get_sessions_with_team", side_effect=error):
            response = self._get(datetime(2025, 1, 13, 17, 0, tzinfo=ORG_TZ))
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch today's sessions"

    def test_session_students(self, db, roster):
        db.query(models.Student).filter(models.Student.studentid == "student-1").update(
            {"grade": "4", "level": "Beginner"}
        )
        db.query(models.Enrollment).filter(models.Enrollment.enrollmentid == "enr-3").update({"isactive": False})
        db.commit()

        response = client.get("/api/sessions-today/session-1/students")
        assert response.status_code == 200
        assert response.json() == {
            "students": [
                {"studentId": "student-1", "firstName": "Sam1", "lastName": "Student", "grade": "4", "level": "Beginner"},
                {"studentId": "student-2", "firstName": "Sam2", "lastName": "Student", "grade": None, "level": None},
            ]
        }

    def test_unknown_session(self, roster):
        response = client.get("/api/sessions-today/missing/students")
        assert response.status_code == 404
        assert response.json() == {"error": "Failed to fetch students", "details": "Session not found"}
