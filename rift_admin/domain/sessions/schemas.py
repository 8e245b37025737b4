"""Sessions domain schemas - Pydantic models for today's schedule"""

from typing import Literal, Optional

from pydantic import BaseModel

SessionStatus = Literal["active", "upcoming", "completed"]


class TodaySession(BaseModel):
    sessionId: str
    teamId: str
    teamName: str
    schoolName: str
    startTime: str
    endTime: str
    startDateTime: str  # UTC ISO-8601
    endDateTime: str
    studentCount: int = 0
    status: SessionStatus


class SessionStudent(BaseModel):
    studentId: str
    firstName: str
    lastName: str
    grade: Optional[str] = None
    level: Optional[str] = None
