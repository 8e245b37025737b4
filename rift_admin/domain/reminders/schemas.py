"""Reminder domain schemas - Pydantic models for run results and previews"""

from typing import Optional

from pydantic import BaseModel, Field


class ReminderDetail(BaseModel):
    """Outcome for one reminder. `coach` holds the parent name for absence notices."""

    coach: str
    team: str
    email: str
    success: bool
    error: Optional[str] = None


class EmailResult(BaseModel):
    success: bool = False
    sent: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    details: list[ReminderDetail] = Field(default_factory=list)


class ReminderHistoryResponse(BaseModel):
    id: int
    type: str
    recipient: str
    content: str
    date: str

    model_config = {"from_attributes": True}


class PendingSessionResponse(BaseModel):
    sessionId: str
    teamId: str
    teamName: str
    coachName: str
    coachEmail: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None


class AbsentStudentResponse(BaseModel):
    sessionId: str
    studentId: str
    studentName: str
    parentName: str
    parentEmail: Optional[str] = None
    teamName: str
