"""
SMS delivery

Twilio Messages API over httpx, plus the helpers that make marketing texts
deliverable (E.164 numbers, no emoji) and the batch fan-out shared with
the newsletter dispatcher.
"""

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ...config import ConfigurationError, Settings
from ...shared.validators import clean_phone_number
from ..mailer.batch import NO_RECIPIENTS_ERROR, dispatch_in_chunks
from ..mailer.schemas import BatchError, BatchResult, SendAttemptResult
from ..mailer.sender import Sleep

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
TWILIO_TIMEOUT = 10.0

_EMOJI = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF\u2600-\u26FF\u2700-\u27BF]"
)
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class SmsDeliveryError(Exception):
    """Twilio rejected a message"""


def clean_sms_body(text: str) -> str:
    """Strip emoji (they often cause carrier 'undelivered') and collapse whitespace"""
    return re.sub(r"\s+", " ", _EMOJI.sub("", text or "")).strip()


def replace_variables(content: str, variables: Mapping[str, Any]) -> str:
    """Replace {name} placeholders; unknown placeholders are left untouched, None becomes ''"""

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(substitute, content or "")


class TwilioTransport:
    """Posts messages to the Twilio REST API"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_sid = account_sid
        self._auth_token = auth_token
        self.from_number = clean_phone_number(from_number)
        self._http_transport = http_transport

    def __repr__(self) -> str:
        return f"TwilioTransport(account_sid={self.account_sid!r}, from_number={self.from_number!r})"

    async def send(self, to: str, body: str) -> str:
        """Send one SMS and return its message SID. Raises on any non-2xx response."""
        data = {"To": to, "From": self.from_number, "Body": body}
        async with httpx.AsyncClient(transport=self._http_transport) as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json",
                auth=(self.account_sid, self._auth_token),
                data=data,
                timeout=TWILIO_TIMEOUT,
            )

        logger.info(f"📡 Twilio API response status: {response.status_code}")
        if response.status_code in (200, 201):
            return response.json().get("sid", "")

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error_message = error_data.get("message") or f"HTTP {response.status_code}"
        error_code = error_data.get("code")
        raise SmsDeliveryError(f"[{error_code}] {error_message}" if error_code else error_message)


def resolve_sms_transport(settings: Settings) -> TwilioTransport:
    """
    Raises:
        ConfigurationError: Twilio credentials are incomplete
    """
    twilio = settings.twilio
    if not twilio.account_sid or not twilio.auth_token or not twilio.from_number:
        raise ConfigurationError(
            "Missing Twilio credentials. Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN "
            "and TWILIO_PHONE_NUMBER."
        )
    return TwilioTransport(twilio.account_sid, twilio.auth_token, twilio.from_number)


@dataclass
class SmsRecipient:
    phone: str
    variables: dict[str, Any] = field(default_factory=dict)
    key: Optional[str] = None  # caller's id for the recipient, e.g. parentid


class SmsSender:
    """Single and batch SMS sends with per-recipient failure isolation"""

    def __init__(self, settings: Settings, transport: TwilioTransport, sleep: Sleep = asyncio.sleep):
        self.settings = settings
        self.transport = transport
        self._sleep = sleep

    async def send(self, to: str, body: str) -> SendAttemptResult:
        phone = clean_phone_number(to)
        if not phone or len(phone) < 8:
            return SendAttemptResult(recipient=to or "", success=False, error="Invalid phone number", attempts=0)

        message = clean_sms_body(body)
        if not message:
            return SendAttemptResult(recipient=phone, success=False, error="Empty message", attempts=0)

        try:
            sid = await self.transport.send(phone, message)
        except (SmsDeliveryError, httpx.HTTPError) as e:
            logger.error(f"❌ Failed to send SMS to {phone}: {e}")
            return SendAttemptResult(recipient=phone, success=False, error=str(e) or type(e).__name__, attempts=1)

        logger.info(f"✅ SMS sent to {phone} (SID: {sid})")
        return SendAttemptResult(recipient=phone, success=True, message_id=sid, attempts=1)

    async def send_batch(self, recipients: Sequence[SmsRecipient], body_template: str) -> BatchResult:
        """Personalize `body_template` per recipient and send in chunks"""
        if not recipients:
            logger.warning("⚠️ SMS batch requested with no recipients")
            return BatchResult(total=0, errors=[BatchError(recipient="N/A", error=NO_RECIPIENTS_ERROR)])

        result = BatchResult(total=len(recipients))

        async def send_one(recipient: SmsRecipient) -> SendAttemptResult:
            return await self.send(recipient.phone, replace_variables(body_template, recipient.variables))

        outcomes = await dispatch_in_chunks(
            list(recipients),
            send_one,
            batch_size=self.settings.batch_size,
            concurrency=self.settings.concurrency,
            batch_delay_seconds=self.settings.batch_delay_seconds,
            sleep=self._sleep,
            label="sms",
        )

        for recipient, outcome in zip(recipients, outcomes):
            if isinstance(outcome, BaseException):
                outcome = SendAttemptResult(
                    recipient=recipient.phone,
                    success=False,
                    error=str(outcome) or type(outcome).__name__,
                )
            result.record(outcome)

        logger.info(f"📱 SMS batch complete: {result.sent} sent, {result.failed} failed")
        return result
