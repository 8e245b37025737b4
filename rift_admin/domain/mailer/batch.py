"""
Batch dispatcher

Fans a recipient list out over the single-message sender: fixed-size batches,
fixed-size concurrency chunks inside each batch, and a pause between batches
to stay under provider rate limits. Per-recipient failures are recorded and
never abort the rest of the batch.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar, Union

from ...config import Settings
from ...shared.validators import is_deliverable_address
from .providers import SmtpProvider, resolve_transport
from .schemas import (
    BatchError,
    BatchResult,
    NewsletterTemplate,
    OutboundEmail,
    Recipient,
    SendAttemptResult,
)
from .sender import NewsletterSender, Sleep

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

NO_RECIPIENTS_ERROR = "No recipients provided"


async def dispatch_in_chunks(
    items: Sequence[T],
    send_one: Callable[[T], Awaitable[R]],
    *,
    batch_size: int,
    concurrency: int,
    batch_delay_seconds: float,
    sleep: Sleep = asyncio.sleep,
    label: str = "send",
) -> list[Union[R, BaseException]]:
    """
    Run `send_one` over `items` in batches and concurrency chunks.

    Chunk N+1 never starts before every call in chunk N has settled. Returns
    one entry per item, in input order; a call that raised is returned as
    its exception instead of a result.
    """
    batch_size = max(1, batch_size)
    concurrency = max(1, concurrency)
    total_batches = (len(items) + batch_size - 1) // batch_size
    outcomes: list[Union[R, BaseException]] = []

    for batch_index in range(total_batches):
        batch = items[batch_index * batch_size : (batch_index + 1) * batch_size]
        logger.info(
            f"📦 [{label}] batch {batch_index + 1}/{total_batches} ({len(batch)} recipients)"
        )

        for offset in range(0, len(batch), concurrency):
            chunk = batch[offset : offset + concurrency]
            settled = await asyncio.gather(*(send_one(item) for item in chunk), return_exceptions=True)
            outcomes.extend(settled)

        if batch_index < total_batches - 1 and batch_delay_seconds > 0:
            logger.info(f"⏳ [{label}] waiting {batch_delay_seconds}s before next batch")
            await sleep(batch_delay_seconds)

    return outcomes


@dataclass
class PreparedRecipients:
    recipients: list[Recipient] = field(default_factory=list)
    invalid: int = 0
    duplicates: int = 0


def prepare_recipients(rows: Iterable[Any]) -> PreparedRecipients:
    """
    Normalize subscriber rows (strings, mappings or objects with .email)
    into unique deliverable recipients. Duplicates are matched
    case-insensitively; the first spelling wins.
    """
    prepared = PreparedRecipients()
    seen: set[str] = set()

    for row in rows:
        if isinstance(row, Recipient):
            email, name = row.email, row.name
        elif isinstance(row, str) or row is None:
            email, name = row, None
        elif isinstance(row, dict):
            email, name = row.get("email"), row.get("name")
        else:
            email, name = getattr(row, "email", None), getattr(row, "name", None)

        if not is_deliverable_address(email):
            prepared.invalid += 1
            continue

        email = email.strip()
        key = email.lower()
        if key in seen:
            prepared.duplicates += 1
            continue

        seen.add(key)
        prepared.recipients.append(Recipient(email=email, name=name))

    return prepared


class BatchDispatcher:
    """Sends one newsletter template to many recipients"""

    def __init__(self, settings: Settings, sender: NewsletterSender, sleep: Sleep = asyncio.sleep):
        self.settings = settings
        self.sender = sender
        self._sleep = sleep

    async def send_batch(
        self,
        recipients: Sequence[Union[Recipient, str]],
        template: NewsletterTemplate,
        provider: Union[str, SmtpProvider, None] = None,
    ) -> BatchResult:
        """
        Deliver `template` to every recipient.

        The result always satisfies sent + failed == total when total > 0.

        Raises:
            ConfigurationError: the provider cannot be resolved
        """
        if not recipients:
            logger.warning("⚠️ Batch send requested with no recipients")
            return BatchResult(total=0, errors=[BatchError(recipient="N/A", error=NO_RECIPIENTS_ERROR)])

        normalized = [r if isinstance(r, Recipient) else Recipient(email=r) for r in recipients]
        transport = resolve_transport(provider, self.settings)
        result = BatchResult(total=len(normalized))

        logger.info(
            f"📧 Sending '{template.subject}' to {result.total} recipients via "
            f"{transport.provider.value} (batch={self.settings.batch_size}, "
            f"concurrency={self.settings.concurrency})"
        )

        async def send_one(recipient: Recipient) -> SendAttemptResult:
            token = self.sender.token_service.sign(recipient.email)
            message = OutboundEmail(
                to=recipient.email,
                subject=template.subject,
                html=template.html,
                from_name=template.from_name,
                from_email=template.from_email,
                text=template.text,
                unsubscribe_token=token,
            )
            return await self.sender.send(message, transport=transport)

        outcomes = await dispatch_in_chunks(
            normalized,
            send_one,
            batch_size=self.settings.batch_size,
            concurrency=self.settings.concurrency,
            batch_delay_seconds=self.settings.batch_delay_seconds,
            sleep=self._sleep,
            label="newsletter",
        )

        for recipient, outcome in zip(normalized, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"❌ Send to {recipient.email} raised: {outcome}")
                outcome = SendAttemptResult(
                    recipient=recipient.email,
                    success=False,
                    error=str(outcome) or type(outcome).__name__,
                )
            result.record(outcome)

        logger.info(f"✅ Batch complete: {result.sent} sent, {result.failed} failed of {result.total}")
        return result


def first_errors(result: BatchResult, limit: Optional[int] = 10) -> list[dict]:
    """Error entries for API responses, capped at `limit`"""
    errors = [{"recipient": e.recipient, "error": e.error} for e in result.errors]
    return errors if limit is None else errors[:limit]
