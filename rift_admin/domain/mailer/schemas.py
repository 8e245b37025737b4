"""Mailer domain schemas - message, result and request shapes"""

from dataclasses import asdict, dataclass, field
from typing import Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class Recipient:
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class NewsletterTemplate:
    """Content shared by every recipient of a batch"""

    subject: str
    html: str
    from_name: str
    from_email: str
    text: Optional[str] = None


@dataclass(frozen=True)
class OutboundEmail:
    """One fully addressed message for the single-message sender"""

    to: str
    subject: str
    html: str
    from_name: str
    from_email: str
    text: Optional[str] = None
    unsubscribe_token: Optional[str] = None


@dataclass
class SendAttemptResult:
    recipient: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass
class BatchError:
    recipient: str
    error: str


@dataclass
class BatchResult:
    total: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[BatchError] = field(default_factory=list)

    def record(self, outcome: SendAttemptResult) -> None:
        if outcome.success:
            self.sent += 1
        else:
            self.failed += 1
            self.errors.append(
                BatchError(recipient=outcome.recipient, error=outcome.error or "Unknown error")
            )

    def to_dict(self) -> dict:
        return asdict(self)


class SendNewsletterRequest(BaseModel):
    """Body of POST /api/email-marketing/send"""

    subject: str = ""
    from_name: str = ""
    from_email: str = ""
    html: str = ""
    text_alt: Optional[str] = None
    provider: Optional[str] = None  # gmail (default), relay, marketing
    queue: bool = False
