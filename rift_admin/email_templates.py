"""
Email templates

Coach attendance reminders and parent absence notices are written in MJML and
compiled to HTML. The unsubscribe pages are plain HTML shown in the browser.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from html import escape
from typing import Optional, Union

from mjml import mjml_to_html

logger = logging.getLogger(__name__)

THEME = {
    "primary": "#00bfff",
    "background": "#f5faff",
    "card_bg": "#ffffff",
    "text_primary": "#111111",
    "text_muted": "#555555",
    "footer": "#999999",
    "border": "#e0e0e0",
    "success": "#16a34a",
    "danger": "#dc2626",
}

ATTENDANCE_DASHBOARD_URL = "https://dash-board-coaches-whpv.vercel.app/"
CONTACT_EMAIL = "info@disciplinerift.com"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise ValueError(f"Failed to compile MJML template: {str(e)}") from e


def format_long_date(day: date) -> str:
    """Monday, January 6, 2025"""
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def format_session_time(value: Union[time, str, None]) -> str:
    """06:00 PM"""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        parts = value.split(":")
        value = time(int(parts[0]), int(parts[1]) if len(parts) > 1 else 0)
    return value.strftime("%I:%M %p")


def get_base_template(title: str, preview_text: str, heading: str, content_sections: str) -> str:
    """MJML wrapper shared by the reminder emails"""
    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="24px">
          <mj-column>
            <mj-text align="center" color="#ffffff" font-size="24px" font-weight="700" letter-spacing="1px">
              {heading}
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="{THEME['card_bg']}" padding="30px">
          <mj-column>
            {content_sections}
          </mj-column>
        </mj-section>

        <mj-section padding="20px">
          <mj-column>
            <mj-text align="center" font-size="12px" color="{THEME['footer']}">
              DR Sports &amp; Athletics &bull; #DisciplineRift
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def coach_reminder_subject(team_name: str) -> str:
    return f"Reminder to complete attendance for {team_name} group"


def render_coach_reminder(
    coach_name: str,
    team_name: str,
    session_date: str,
    session_time: str,
    session_end_time: str,
) -> RenderedEmail:
    coach = escape(coach_name or "Coach")
    team = escape(team_name or "")

    content = f"""
            <mj-text font-size="16px" line-height="1.6" color="{THEME['text_primary']}">
              <p>Hi {coach},</p>
              <p>This is a friendly reminder that you haven't submitted attendance for
              <strong>{team}</strong> today, <strong>{escape(session_date)}</strong>.</p>
              <p>The scheduled session was from <strong>{escape(session_time)}</strong>
              to <strong>{escape(session_end_time)}</strong>.</p>
              <p>At DR Sports &amp; Athletics, we lead by example. Staying on top of attendance
              keeps our teams #DRIVEN and #FUELED.</p>
            </mj-text>
            <mj-button href="{ATTENDANCE_DASHBOARD_URL}" background-color="{THEME['primary']}" color="#ffffff" border-radius="50px" font-weight="600">
              Submit Attendance
            </mj-button>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}">
              This is an automated message from Discipline Rift.<br/>
              No action is required if this has already been completed.
            </mj-text>
    """

    html = compile_mjml_to_html(
        get_base_template(
            title="DRVC - Attendance Reminder",
            preview_text=f"Attendance needed for {team}",
            heading="ATTENDANCE NEEDED",
            content_sections=content,
        )
    )

    text = (
        f"ATTENDANCE REMINDER - {team_name}\n\n"
        f"Hello {coach_name},\n\n"
        "You have a session scheduled for today and student attendance has not been recorded yet.\n\n"
        f"Team: {team_name}\n"
        f"Date: {session_date}\n"
        f"Schedule: {session_time} - {session_end_time}\n\n"
        f"Please record attendance for this session: {ATTENDANCE_DASHBOARD_URL}\n\n"
        "If you have already recorded the attendance you can ignore this message."
    )

    return RenderedEmail(subject=coach_reminder_subject(team_name), html=html, text=text)


def parent_absence_subject(student_name: str, team_name: str) -> str:
    return f"Absence Notification - {student_name} ({team_name})"


def render_parent_absence(
    parent_name: str,
    student_name: str,
    team_name: str,
    session_date: str,
    session_time: str,
    session_end_time: str,
) -> RenderedEmail:
    parent = escape(parent_name)
    student = escape(student_name)
    team = escape(team_name or "")

    content = f"""
            <mj-text font-size="16px" line-height="1.6" color="{THEME['text_primary']}">
              <p>Dear <strong>{parent}</strong>,</p>
              <p>We noticed the absence of <strong>{student}</strong> from today's scheduled session.</p>
            </mj-text>
            <mj-text font-size="15px" line-height="1.8" color="{THEME['text_primary']}" container-background-color="{THEME['background']}" padding="20px">
              <strong>Student:</strong> {student}<br/>
              <strong>Team:</strong> {team}<br/>
              <strong>Date:</strong> {escape(session_date)}<br/>
              <strong>Schedule:</strong> {escape(session_time)} - {escape(session_end_time)}
            </mj-text>
            <mj-text font-size="16px" line-height="1.6" color="{THEME['text_primary']}">
              <p>Unexpected situations happen. If there is anything you would like to share
              about the absence, or if arrangements are needed for future sessions, reach out
              and we will help keep {student}'s experience positive and consistent.</p>
              <p>Warm regards,<br/><strong>The Discipline Rift Team</strong></p>
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" />
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}">
              This is an automated message based on attendance records.<br/>
              If you believe this was sent in error, please
              <a href="mailto:{CONTACT_EMAIL}">contact us</a>.
            </mj-text>
    """

    html = compile_mjml_to_html(
        get_base_template(
            title="Student Absence Notification",
            preview_text=f"{student} was absent today",
            heading="Absence Notification",
            content_sections=content,
        )
    )

    text = (
        f"ABSENCE NOTIFICATION - {student_name}\n\n"
        f"Dear {parent_name},\n\n"
        f"We noticed the absence of {student_name} from today's scheduled session.\n\n"
        f"Student: {student_name}\n"
        f"Team: {team_name}\n"
        f"Date: {session_date}\n"
        f"Schedule: {session_time} - {session_end_time}\n\n"
        f"If you have any questions please contact us at {CONTACT_EMAIL}.\n\n"
        "The Discipline Rift Team"
    )

    return RenderedEmail(
        subject=parent_absence_subject(student_name, team_name), html=html, text=text
    )


def unsubscribe_page(title: str, message: str, detail: Optional[str] = None, success: bool = False) -> str:
    """Standalone HTML page returned to a browser hitting the unsubscribe link"""
    color = THEME["success"] if success else THEME["danger"]
    extra = f"<p>{escape(detail)}</p>" if detail else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: {THEME['background']}; margin: 0; padding: 40px 20px; }}
    .card {{ max-width: 520px; margin: 0 auto; background: #ffffff; border-radius: 10px; border: 1px solid {THEME['border']}; padding: 40px; text-align: center; }}
    h1 {{ color: {color}; font-size: 24px; margin-top: 0; }}
    p {{ color: {THEME['text_muted']}; line-height: 1.6; }}
  </style>
</head>
<body>
  <div class="card">
    <h1>{escape(title)}</h1>
    <p>{escape(message)}</p>
    {extra}
  </div>
</body>
</html>"""


def unsubscribe_missing_token_page() -> str:
    return unsubscribe_page("❌ Invalid Link", "The unsubscribe link is invalid or has expired.")


def unsubscribe_invalid_token_page() -> str:
    return unsubscribe_page(
        "❌ Invalid Token", "The unsubscribe token is invalid or has been tampered with."
    )


def unsubscribe_error_page() -> str:
    return unsubscribe_page(
        "⚠️ Error",
        "An error occurred while processing your unsubscribe request. Please try again later.",
    )


def unsubscribe_success_page(email: str) -> str:
    return unsubscribe_page(
        "✓ Successfully Unsubscribed",
        "You have been successfully unsubscribed from our newsletter.",
        detail=f"{email} will no longer receive emails from us.",
        success=True,
    )
