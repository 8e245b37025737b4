"""
Unsubscribe token service

Signs and verifies short-lived JWTs that bind a recipient email address.
Used for List-Unsubscribe links and view-in-browser links.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError
from jose import jwt as jose_jwt

from ...config import MIN_SECRET_LENGTH, ConfigurationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_EXPIRATION = timedelta(days=30)


@dataclass(frozen=True)
class TokenVerification:
    email: str
    valid: bool


class UnsubscribeTokenService:
    """HS256 signer/verifier for unsubscribe tokens"""

    def __init__(self, secret: Optional[str]):
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"UNSUBSCRIBE_JWT_SECRET must be defined and at least {MIN_SECRET_LENGTH} characters"
            )
        self._secret = secret

    def __repr__(self) -> str:
        return "UnsubscribeTokenService(secret=<hidden>)"

    def sign(self, email: str, expires_in: timedelta = TOKEN_EXPIRATION) -> str:
        """Create a token for `email` that expires after `expires_in`"""
        if not email:
            raise ValueError("Email is required to generate unsubscribe token")

        expire = datetime.now(timezone.utc) + expires_in
        return jose_jwt.encode({"email": email, "exp": expire}, self._secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str]) -> TokenVerification:
        """
        Decode a token. Never raises: missing, malformed, expired and
        tampered tokens all come back as valid=False with an empty email.
        """
        if not token:
            return TokenVerification(email="", valid=False)

        try:
            payload = jose_jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.warning(f"⚠️ Unsubscribe token rejected: {type(e).__name__}")
            return TokenVerification(email="", valid=False)
        except Exception as e:
            logger.warning(f"⚠️ Unsubscribe token could not be decoded: {type(e).__name__}")
            return TokenVerification(email="", valid=False)

        email = payload.get("email") if isinstance(payload, dict) else None
        if not email or not isinstance(email, str):
            return TokenVerification(email="", valid=False)

        return TokenVerification(email=email, valid=True)
