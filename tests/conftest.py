# type: ignore
"""Shared fixtures: in-memory database, test settings and fake transports"""
import os

# Must be set before rift_admin is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UNSUBSCRIBE_JWT_SECRET"] = "test-secret-that-is-definitely-longer-than-32-chars"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import date, time  # noqa: E402
from email.utils import make_msgid  # noqa: E402

import pytest  # noqa: E402

from rift_admin import models  # noqa: E402
from rift_admin.config import Settings, SmtpRouteSettings, TwilioSettings  # noqa: E402
from rift_admin.database import Base, SessionLocal, engine  # noqa: E402
from rift_admin.domain.mailer.providers import SmtpProvider, TransportConfig  # noqa: E402
from rift_admin.domain.mailer.unsub import UnsubscribeTokenService  # noqa: E402

TEST_SECRET = os.environ["UNSUBSCRIBE_JWT_SECRET"]


def make_settings(**overrides) -> Settings:
    """Fully configured gmail + relay routes; marketing left without credentials."""
    base = dict(
        gmail=SmtpRouteSettings(
            host="smtp.gmail.com",
            port=465,
            user="reminders@disciplinerift.com",
            password="abcd efgh ijkl mnop",
            use_ssl=True,
            require_tls=False,
        ),
        relay=SmtpRouteSettings(
            host="smtp-relay.gmail.com",
            port=587,
            user="relay@disciplinerift.com",
            password="relay-pass",
            use_ssl=False,
            require_tls=True,
        ),
        marketing=SmtpRouteSettings(host="smtp.gmail.com", port=587),
        unsubscribe_secret=TEST_SECRET,
        unsubscribe_url_base="https://admin.disciplinerift.com",
        app_url="https://admin.disciplinerift.com",
        batch_size=50,
        concurrency=3,
        batch_delay_seconds=5.0,
        twilio=TwilioSettings(account_sid="AC123", auth_token="token", from_number="(555) 000-1111"),
        reminder_from_address="reminders@disciplinerift.com",
    )
    base.update(overrides)
    return Settings(**base)


class FakeSleep:
    """Records requested delays instead of sleeping"""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FakeTransport:
    """
    Stands in for SmtpTransport. `outcomes` maps a recipient address to a list
    of exceptions / None consumed one per attempt; None (or exhausted) succeeds.
    """

    def __init__(self, provider=SmtpProvider.GMAIL, outcomes=None):
        self.config = TransportConfig(
            provider=provider,
            host="smtp.test",
            port=465,
            user="sender@disciplinerift.com",
            password="secret",
            use_ssl=True,
            require_tls=False,
        )
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.sent = []

    @property
    def provider(self):
        return self.config.provider

    async def send(self, msg):
        to = msg["To"]
        queue = self.outcomes.get(to)
        if queue:
            outcome = queue.pop(0)
            if outcome is not None:
                raise outcome
        self.sent.append(msg)
        return msg["Message-ID"] or make_msgid()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def token_service():
    return UnsubscribeTokenService(TEST_SECRET)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def roster(db):
    """
    One team practising Mondays 18:00-19:00 during January 2025, a coach,
    and three enrolled students each with their own parent.
    """
    school = models.School(schoolid=1, name="Lincoln Elementary", location="Miami, FL")
    coach = models.Staff(id="coach-1", name="Carla Coach", email="carla@disciplinerift.com", phone="5551234567")
    team = models.Team(teamid="team-1", name="Volley U10", sport="Volleyball", schoolid=1)
    session = models.TeamSession(
        sessionid="session-1",
        teamid="team-1",
        startdate=date(2025, 1, 6),
        enddate=date(2025, 1, 27),
        starttime=time(18, 0),
        endtime=time(19, 0),
        daysofweek="monday",
        repeat="weekly",
        coachid="coach-1",
        cancel="",
    )
    parents, students, enrollments = [], [], []
    for i in range(1, 4):
        parents.append(
            models.Parent(
                parentid=f"parent-{i}",
                firstname=f"Pat{i}",
                lastname="Parent",
                email=f"parent{i}@example.com",
                phone=f"555000000{i}",
            )
        )
        students.append(
            models.Student(studentid=f"student-{i}", firstname=f"Sam{i}", lastname="Student", parentid=f"parent-{i}")
        )
        enrollments.append(
            models.Enrollment(enrollmentid=f"enr-{i}", studentid=f"student-{i}", teamid="team-1", isactive=True)
        )

    db.add_all([school, coach, team, session, *parents])
    db.flush()
    db.add_all(students)
    db.flush()
    db.add_all(enrollments)
    db.commit()
    return {"team": team, "coach": coach, "session": session, "parents": parents, "students": students}
