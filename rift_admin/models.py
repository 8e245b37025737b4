import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class School(Base):
    __tablename__ = "school"

    schoolid = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)


class Team(Base):
    __tablename__ = "team"

    teamid = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sport = Column(String(100), nullable=True)
    schoolid = Column(Integer, ForeignKey("school.schoolid"), nullable=True)

    school = relationship("School")


class Staff(Base):
    """Coaches and other program staff"""

    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)


class TeamSession(Base):
    """
    Recurrence definition for a team's practices.

    Occurrences are never stored; they are expanded on demand from
    startdate/enddate/daysofweek/cancel (see domain.scheduling.occurrences).
    """

    __tablename__ = "session"

    sessionid = Column(String(36), primary_key=True, default=generate_id)
    teamid = Column(String(36), ForeignKey("team.teamid"), nullable=False, index=True)
    startdate = Column(Date, nullable=False)
    enddate = Column(Date, nullable=True)
    starttime = Column(Time, nullable=True)
    endtime = Column(Time, nullable=True)
    daysofweek = Column(String(255), nullable=True)  # e.g. "monday,wednesday"
    repeat = Column(String(50), nullable=True)  # cadence hint only
    coachid = Column(String(36), ForeignKey("staff.id"), nullable=True)
    cancel = Column(Text, nullable=True)  # comma separated YYYY-MM-DD dates

    team = relationship("Team")


class Parent(Base):
    __tablename__ = "parent"

    parentid = Column(String(36), primary_key=True, default=generate_id)
    firstname = Column(String(100), nullable=False)
    lastname = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)


class Student(Base):
    __tablename__ = "student"

    studentid = Column(String(36), primary_key=True, default=generate_id)
    firstname = Column(String(100), nullable=False)
    lastname = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=True)
    level = Column(String(50), nullable=True)
    parentid = Column(String(36), ForeignKey("parent.parentid"), nullable=True)

    parent = relationship("Parent")


class Enrollment(Base):
    __tablename__ = "enrollment"

    enrollmentid = Column(String(36), primary_key=True, default=generate_id)
    studentid = Column(String(36), ForeignKey("student.studentid"), nullable=False)
    teamid = Column(String(36), ForeignKey("team.teamid"), nullable=False, index=True)
    isactive = Column(Boolean, default=True, nullable=False)

    student = relationship("Student")


class Assistance(Base):
    """
    Attendance marks. A row without studentid marks the session as taken;
    a row with studentid records that student's attendance for the date.
    """

    __tablename__ = "assistance"

    id = Column(String(36), primary_key=True, default=generate_id)
    sessionid = Column(String(36), ForeignKey("session.sessionid"), nullable=False, index=True)
    studentid = Column(String(36), ForeignKey("student.studentid"), nullable=True)
    date = Column(Date, nullable=False, index=True)
    assisted = Column(Boolean, default=False, nullable=False)


class ReminderEmail(Base):
    """Append-only audit log of dispatched reminders and notices"""

    __tablename__ = "reminder_emails"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(100), nullable=False)
    recipient = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    date = Column(String(32), nullable=False)  # local wall-clock, YYYY-MM-DDTHH:MM:SS


class NewsletterSubscriber(Base):
    __tablename__ = "Newsletter"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
