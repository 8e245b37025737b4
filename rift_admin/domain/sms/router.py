"""SMS marketing router - text selected parents of a team"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import ConfigurationError, Settings
from ...database import get_db
from ...dependencies import get_app_settings
from ...models import Enrollment, Staff, Team
from .repository import SmsRepository
from .service import SmsRecipient, SmsSender, resolve_sms_transport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/marketing", tags=["SMS Marketing"])


class SendSmsRequest(BaseModel):
    teamId: str = ""
    parentIds: list[str] = Field(default_factory=list)
    message: str = ""


def build_parent_recipients(
    team: Team, coach: Optional[Staff], enrollments: list[Enrollment], parent_ids: list[str]
) -> list[SmsRecipient]:
    """One recipient per selected parent, with all of their enrolled children in the variables"""
    school_name = team.school.name if team.school else "School"
    school_location = (team.school.location if team.school else None) or "Location not specified"
    coach_name = coach.name if coach else "Coach"

    grouped: dict[str, list] = {}
    parents = {}
    for enrollment in enrollments:
        student = enrollment.student
        if student is None or student.parent is None or student.parent.parentid not in parent_ids:
            continue
        parents[student.parent.parentid] = student.parent
        grouped.setdefault(student.parent.parentid, []).append(student)

    recipients = []
    for parent_id, students in grouped.items():
        parent = parents[parent_id]
        parent_name = f"{parent.firstname} {parent.lastname}"
        student_names = ", ".join(f"{s.firstname} {s.lastname}" for s in students)
        variables = {
            "PARENT_NAME": parent_name,
            "PARENT_FIRSTNAME": parent.firstname,
            "STUDENT_NAME": student_names,
            "STUDENT_FIRSTNAME": ", ".join(s.firstname for s in students),
            "TEAM_NAME": team.name,
            "SPORT": team.sport or "",
            "SCHOOL_NAME": school_name,
            "SCHOOL_LOCATION": school_location,
            "COACH_NAME": coach_name,
            "PARENT_EMAIL": parent.email or "",
            "PARENT_PHONE": parent.phone or "",
            "TEAM_DESCRIPTION": team.description or "",
            "parentName": parent_name,
            "studentName": student_names,
            "teamName": team.name,
        }
        recipients.append(SmsRecipient(phone=parent.phone or "", variables=variables, key=parent_id))
    return recipients


@router.post("/send-sms")
async def send_sms_campaign(
    payload: SendSmsRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Send a personalized SMS to the selected parents of a team"""
    logger.info(
        f"📱 [API] SMS campaign for team {payload.teamId}: {len(payload.parentIds)} parents selected"
    )

    if not payload.teamId or not payload.parentIds or not payload.message.strip():
        raise HTTPException(status_code=400, detail="Missing required fields: teamId, parentIds, message")

    try:
        team = SmsRepository.get_team(db, payload.teamId)
        if not team:
            raise HTTPException(status_code=404, detail="Team not found")
        coach = SmsRepository.get_team_coach(db, payload.teamId)
        enrollments = SmsRepository.get_enrollments_for_parents(db, payload.teamId, payload.parentIds)
    except SQLAlchemyError as e:
        logger.error(f"❌ [API] Error fetching team roster: {e}")
        raise HTTPException(status_code=500, detail="Error fetching parent data") from e

    try:
        transport = resolve_sms_transport(settings)
    except ConfigurationError as e:
        logger.error(f"❌ [API] SMS configuration unavailable: {e}")
        raise HTTPException(status_code=500, detail=f"SMS configuration unavailable: {e}") from e

    recipients = build_parent_recipients(team, coach, enrollments, payload.parentIds)
    result = await SmsSender(settings, transport).send_batch(recipients, payload.message)

    return {
        "success": True,
        "message": (
            f"SMS campaign completed for {len(payload.parentIds)} selected parents from team {team.name}"
        ),
        "statistics": {
            "total": result.total,
            "success": result.sent,
            "failures": result.failed,
            "selectedTeam": team.name,
            "selectedParentCount": len(payload.parentIds),
        },
        "errors": [{"recipient": e.recipient, "error": e.error} for e in result.errors],
    }
