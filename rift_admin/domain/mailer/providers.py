"""
SMTP provider selection

Maps each logical outbound route (default Gmail account, Workspace SMTP relay
for bulk, dedicated marketing account) to a configured transport. Resolution
only validates configuration; no connection is opened until a send.
"""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import Message
from email.utils import parseaddr
from enum import Enum
from typing import Optional, Union

from ...config import ConfigurationError, Settings, SmtpRouteSettings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30


class SmtpProvider(str, Enum):
    GMAIL = "gmail"  # low volume, <= 500/day
    RELAY = "relay"  # Workspace SMTP relay, bulk
    MARKETING = "marketing"  # dedicated campaign account


# provider -> (settings attribute, user env var, password env var)
_ROUTES: dict[SmtpProvider, tuple[str, str, str]] = {
    SmtpProvider.GMAIL: ("gmail", "GMAIL_USER", "GMAIL_APP_PASSWORD"),
    SmtpProvider.RELAY: ("relay", "RELAY_USER", "RELAY_PASS"),
    SmtpProvider.MARKETING: ("marketing", "MARKETING_SMTP_USER", "MARKETING_SMTP_PASS"),
}


@dataclass(frozen=True)
class TransportConfig:
    provider: SmtpProvider
    host: str
    port: int
    user: str
    password: str = field(repr=False)
    use_ssl: bool
    require_tls: bool


def parse_provider(name: Union[str, SmtpProvider, None], settings: Settings) -> SmtpProvider:
    """Turn a provider name (or None for the configured default) into a SmtpProvider"""
    if isinstance(name, SmtpProvider):
        return name
    raw = (name or settings.default_provider or SmtpProvider.GMAIL.value).strip().lower()
    try:
        return SmtpProvider(raw)
    except ValueError as e:
        valid = ", ".join(p.value for p in SmtpProvider)
        raise ConfigurationError(f"Unknown SMTP provider {raw!r}. Expected one of: {valid}") from e


def build_transport_config(provider: SmtpProvider, settings: Settings) -> TransportConfig:
    attr, user_env, pass_env = _ROUTES[provider]
    route: SmtpRouteSettings = getattr(settings, attr)

    if not route.user or not route.password:
        raise ConfigurationError(
            f"{provider.value} SMTP credentials not configured. Set {user_env} and {pass_env}."
        )

    return TransportConfig(
        provider=provider,
        host=route.host,
        port=route.port,
        user=route.user,
        password="".join(route.password.split()),  # app passwords are shown with spaces
        use_ssl=route.use_ssl,
        require_tls=route.require_tls,
    )


class SmtpTransport:
    """Thin smtplib wrapper; one connection per delivery"""

    def __init__(self, config: TransportConfig):
        self.config = config

    @property
    def provider(self) -> SmtpProvider:
        return self.config.provider

    def _connect(self) -> smtplib.SMTP:
        cfg = self.config
        if cfg.use_ssl or cfg.port == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, context=context, timeout=SMTP_TIMEOUT)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=SMTP_TIMEOUT)
            if cfg.require_tls:
                context = ssl.create_default_context()
                server.starttls(context=context)
        server.login(cfg.user, cfg.password)
        return server

    def _deliver(self, msg: Message) -> str:
        envelope_from = parseaddr(msg["From"])[1] or self.config.user
        recipients = [parseaddr(msg["To"])[1]]

        server = self._connect()
        try:
            server.sendmail(envelope_from, recipients, msg.as_string())
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                logger.debug(f"SMTP quit failed for {self.config.host}")

        return msg["Message-ID"] or ""

    async def send(self, msg: Message) -> str:
        """Deliver one message; returns its Message-ID. Raises on any SMTP failure."""
        return await asyncio.to_thread(self._deliver, msg)

    def _check(self) -> None:
        server = self._connect()
        server.quit()

    async def verify(self) -> None:
        await asyncio.to_thread(self._check)


def resolve_transport(
    provider: Union[str, SmtpProvider, None], settings: Settings
) -> SmtpTransport:
    """
    Build a configured transport for `provider`.

    Raises:
        ConfigurationError: unknown provider or missing credentials
    """
    selected = parse_provider(provider, settings)
    return SmtpTransport(build_transport_config(selected, settings))


async def verify_transport(
    provider: Union[str, SmtpProvider], settings: Settings
) -> dict[str, Optional[Union[bool, str]]]:
    """Connect and authenticate against one provider"""
    try:
        transport = resolve_transport(provider, settings)
        await transport.verify()
        logger.info(f"✅ [MAIL][{transport.provider.value}] transport verified")
        return {
            "success": True,
            "message": f"{transport.provider.value} transport verified successfully",
            "code": None,
        }
    except ConfigurationError as e:
        return {"success": False, "message": str(e), "code": "ECONFIG"}
    except smtplib.SMTPResponseException as e:
        logger.error(f"❌ [MAIL][{provider}] verification failed: {e.smtp_code}")
        return {"success": False, "message": str(e), "code": str(e.smtp_code)}
    except Exception as e:
        logger.error(f"❌ [MAIL][{provider}] verification failed: {e}")
        return {"success": False, "message": str(e), "code": type(e).__name__}


async def verify_transports(settings: Settings) -> dict[str, dict]:
    """Verify every known provider, reporting each independently"""
    results = {}
    for provider in SmtpProvider:
        results[provider.value] = await verify_transport(provider, settings)
    return results
