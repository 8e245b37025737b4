"""
Single-message sender

Personalizes one outbound email (unsubscribe and view-in-browser links,
compliance headers, plain-text fallback) and delivers it through an SMTP
transport with bounded, escalating retries.
"""

import asyncio
import html as html_lib
import logging
import re
import smtplib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from enum import Enum
from typing import Optional, Union

import bleach

from ...config import Settings
from .providers import SmtpProvider, SmtpTransport, resolve_transport
from .schemas import OutboundEmail, SendAttemptResult
from .unsub import UnsubscribeTokenService

logger = logging.getLogger(__name__)

UNSUBSCRIBE_PLACEHOLDER = "{UNSUBSCRIBE_URL}"
VIEW_IN_BROWSER_PLACEHOLDER = "{VIEW_IN_BROWSER_URL}"

_STRIP_BLOCKS = re.compile(r"<(style|script|head)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)

Sleep = Callable[[float], Awaitable[None]]


class ErrorKind(str, Enum):
    AUTH = "auth"
    RELAY_NOT_PROVISIONED = "relay_not_provisioned"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget and backoff tables (seconds). A freshly enabled Workspace
    relay answers 421 for up to half an hour, hence the separate long table.
    """

    max_retries: int = 3
    transient_delays: tuple[float, ...] = (5, 15, 45)
    relay_delays: tuple[float, ...] = (120, 600, 1800)

    def delay_for(self, kind: ErrorKind, retry_number: int) -> float:
        table = self.relay_delays if kind is ErrorKind.RELAY_NOT_PROVISIONED else self.transient_delays
        if not table:
            return 0
        return table[min(retry_number, len(table)) - 1]


def classify_error(exc: BaseException) -> ErrorKind:
    """Decide how a failed SMTP attempt should be treated"""
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return ErrorKind.AUTH

    code = getattr(exc, "smtp_code", None)
    if code == 535:
        return ErrorKind.AUTH

    message = str(exc).lower()
    if code == 421 or "relay" in message:
        return ErrorKind.RELAY_NOT_PROVISIONED

    return ErrorKind.TRANSIENT


def html_to_text(content: str) -> str:
    """Plain-text fallback: drop style/script blocks, strip all tags, collapse whitespace"""
    without_blocks = _STRIP_BLOCKS.sub(" ", content or "")
    stripped = bleach.clean(without_blocks, tags=[], attributes={}, strip=True)
    return re.sub(r"\s+", " ", html_lib.unescape(stripped)).strip()


def unsubscribe_footer(unsubscribe_url: str) -> str:
    return f"""
        <div style="margin-top: 40px; padding-top: 20px; border-top: 1px solid #eee; text-align: center; font-size: 12px; color: #666;">
          <p>Don't want to receive these emails? <a href="{unsubscribe_url}" style="color: #0066cc;">Unsubscribe</a></p>
        </div>
    """


class NewsletterSender:
    """Sends one personalized email with retry/backoff"""

    def __init__(
        self,
        settings: Settings,
        token_service: UnsubscribeTokenService,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.token_service = token_service
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def unsubscribe_url(self, token: str) -> str:
        base = self.settings.unsubscribe_url_base.rstrip("/")
        return f"{base}/api/email-marketing/unsubscribe?token={token}"

    def view_in_browser_url(self, token: str) -> str:
        return f"{self.settings.app_url.rstrip('/')}/email-marketing/view?token={token}"

    def build_message(self, message: OutboundEmail, token: str) -> MIMEMultipart:
        """Render placeholders, guarantee an unsubscribe link and set bulk-mail headers"""
        unsubscribe_url = self.unsubscribe_url(token)
        view_url = self.view_in_browser_url(token)

        html_body = message.html.replace(UNSUBSCRIBE_PLACEHOLDER, unsubscribe_url).replace(
            VIEW_IN_BROWSER_PLACEHOLDER, view_url
        )
        if "unsubscribe" not in html_body.lower():
            html_body += unsubscribe_footer(unsubscribe_url)

        if message.text:
            text_body = message.text.replace(UNSUBSCRIBE_PLACEHOLDER, unsubscribe_url).replace(
                VIEW_IN_BROWSER_PLACEHOLDER, view_url
            )
        else:
            text_body = html_to_text(html_body)
        if unsubscribe_url not in text_body:
            text_body += f"\n\nUnsubscribe: {unsubscribe_url}"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = formataddr((message.from_name, message.from_email))
        msg["To"] = message.to
        domain = message.from_email.split("@")[-1] if "@" in message.from_email else None
        msg["Message-ID"] = make_msgid(domain=domain)
        msg["List-Unsubscribe"] = (
            f"<{unsubscribe_url}>, <mailto:{self.settings.unsubscribe_mailto}?subject=unsubscribe>"
        )
        msg["List-Unsubscribe-Post"] = "List-Unsubscribe=One-Click"
        msg["List-ID"] = self.settings.list_id
        msg["Precedence"] = "bulk"

        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(
        self,
        message: OutboundEmail,
        provider: Union[str, SmtpProvider, None] = None,
        transport: Optional[SmtpTransport] = None,
    ) -> SendAttemptResult:
        """
        Deliver one message.

        Authentication failures stop immediately. Other failures are retried
        up to `max_retries` times, sleeping per the retry policy between
        attempts. Exhausted retries come back as a failed result, not an
        exception.

        Raises:
            ConfigurationError: the provider cannot be resolved (when no
                transport is passed in)
        """
        if transport is None:
            transport = resolve_transport(provider, self.settings)

        if not message.to:
            return SendAttemptResult(recipient="", success=False, error="No recipient address")

        token = message.unsubscribe_token or self.token_service.sign(message.to)
        mime = self.build_message(message, token)
        max_retries = self.retry_policy.max_retries

        attempt = 0
        while True:
            attempt += 1
            try:
                message_id = await transport.send(mime)
            except Exception as e:
                kind = classify_error(e)
                if kind is ErrorKind.AUTH:
                    logger.error(
                        f"❌ Authentication error on {transport.provider.value} - aborting retries"
                    )
                    return SendAttemptResult(
                        recipient=message.to,
                        success=False,
                        error="Authentication failed",
                        attempts=attempt,
                    )

                if attempt > max_retries:
                    logger.error(f"❌ Giving up on {message.to} after {attempt} attempts: {e}")
                    return SendAttemptResult(
                        recipient=message.to,
                        success=False,
                        error=str(e) or type(e).__name__,
                        attempts=attempt,
                    )

                delay = self.retry_policy.delay_for(kind, attempt)
                logger.warning(
                    f"🔄 Retry {attempt}/{max_retries} for {message.to} after {delay}s "
                    f"({kind.value}): {e}"
                )
                await self._sleep(delay)
                continue

            logger.info(f"✅ Email sent to {message.to} via {transport.provider.value}")
            return SendAttemptResult(
                recipient=message.to,
                success=True,
                message_id=message_id,
                attempts=attempt,
            )
