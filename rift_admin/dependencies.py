"""Shared FastAPI dependencies for the delivery pipeline"""

from fastapi import Depends

from .config import Settings, get_settings
from .domain.mailer.sender import NewsletterSender
from .domain.mailer.unsub import UnsubscribeTokenService


def get_app_settings() -> Settings:
    return get_settings()


def get_token_service(settings: Settings = Depends(get_app_settings)) -> UnsubscribeTokenService:
    """Raises ConfigurationError when UNSUBSCRIBE_JWT_SECRET is missing or short"""
    return UnsubscribeTokenService(settings.unsubscribe_secret)


def get_newsletter_sender(
    settings: Settings = Depends(get_app_settings),
    token_service: UnsubscribeTokenService = Depends(get_token_service),
) -> NewsletterSender:
    return NewsletterSender(settings, token_service)
