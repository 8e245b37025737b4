"""Email marketing router - newsletter send, unsubscribe and transport checks"""

import json
import logging
import time
from typing import Optional
from urllib.parse import parse_qs

from arq import create_pool
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import ConfigurationError, Settings
from ...database import get_db
from ...dependencies import get_app_settings, get_newsletter_sender
from ...email_templates import (
    unsubscribe_error_page,
    unsubscribe_invalid_token_page,
    unsubscribe_missing_token_page,
    unsubscribe_success_page,
)
from ...worker import get_redis_settings
from .batch import BatchDispatcher, first_errors, prepare_recipients
from .providers import verify_transports
from .repository import NewsletterRepository
from .schemas import NewsletterTemplate, SendNewsletterRequest
from .sender import NewsletterSender
from .unsub import UnsubscribeTokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/email-marketing", tags=["Email Marketing"])

REQUIRED_FIELDS = ("subject", "from_name", "from_email", "html")


@router.post("/send")
async def send_newsletter(
    payload: SendNewsletterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    sender: NewsletterSender = Depends(get_newsletter_sender),
):
    """Send a newsletter to every subscriber, inline or through the worker queue"""
    started = time.monotonic()

    missing = [name for name in REQUIRED_FIELDS if not (getattr(payload, name) or "").strip()]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Missing required fields: {', '.join(missing)}",
        )

    try:
        subscribers = NewsletterRepository.get_subscribers(db)
    except SQLAlchemyError as e:
        logger.error(f"❌ [API] Failed to fetch subscribers: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch subscribers") from e

    if not subscribers:
        logger.warning("⚠️ [API] No subscribers found in database")
        raise HTTPException(status_code=404, detail="No subscribers found")

    prepared = prepare_recipients(subscribers)
    if not prepared.recipients:
        raise HTTPException(
            status_code=400,
            detail=f"No valid email addresses found ({prepared.invalid} invalid of {len(subscribers)})",
        )

    if prepared.invalid or prepared.duplicates:
        logger.info(
            f"[API] Skipping {prepared.invalid} invalid and {prepared.duplicates} duplicate subscriber rows"
        )

    if payload.queue:
        try:
            pool = await create_pool(get_redis_settings())
            job = await pool.enqueue_job("send_newsletter_task", payload.model_dump())
        except Exception as e:
            logger.error(f"❌ [API] Failed to queue newsletter send: {e}")
            raise HTTPException(status_code=503, detail="Could not queue newsletter send") from e

        logger.info(f"📋 Newsletter send queued: {job.job_id}")
        return {
            "success": True,
            "queued": True,
            "jobId": job.job_id,
            "message": f"Newsletter queued for {len(prepared.recipients)} subscribers",
        }

    template = NewsletterTemplate(
        subject=payload.subject,
        html=payload.html,
        from_name=payload.from_name,
        from_email=payload.from_email,
        text=payload.text_alt,
    )

    try:
        result = await BatchDispatcher(settings, sender).send_batch(
            prepared.recipients, template, provider=payload.provider
        )
    except ConfigurationError as e:
        logger.error(f"❌ [API] Mail provider not configured: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    duration = time.monotonic() - started
    response = {
        "success": True,
        "message": f"Newsletter sent to {result.sent} subscribers",
        "statistics": {
            "total": result.total,
            "sent": result.sent,
            "failed": result.failed,
            "invalid": prepared.invalid,
            "duplicates": prepared.duplicates,
            "duration": f"{duration:.2f}s",
        },
    }
    if result.errors:
        response["errors"] = first_errors(result)
    return response


def _token_service(settings: Settings) -> Optional[UnsubscribeTokenService]:
    try:
        return UnsubscribeTokenService(settings.unsubscribe_secret)
    except ConfigurationError as e:
        logger.error(f"❌ Unsubscribe token service unavailable: {e}")
        return None


def _unsubscribe(db: Session, email: str) -> int:
    removed = NewsletterRepository.delete_by_email(db, email)
    logger.info(f"✅ Unsubscribed {email} ({removed} rows)")
    return removed


@router.get("/unsubscribe", response_class=HTMLResponse)
async def unsubscribe_page(
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Browser unsubscribe link. Always answers with an HTML page."""
    if not token:
        return HTMLResponse(unsubscribe_missing_token_page(), status_code=400)

    token_service = _token_service(settings)
    if token_service is None:
        return HTMLResponse(unsubscribe_error_page(), status_code=500)

    verification = token_service.verify(token)
    if not verification.valid:
        return HTMLResponse(unsubscribe_invalid_token_page(), status_code=400)

    try:
        _unsubscribe(db, verification.email)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to unsubscribe {verification.email}: {e}")
        return HTMLResponse(unsubscribe_error_page(), status_code=500)

    return HTMLResponse(unsubscribe_success_page(verification.email), status_code=200)


async def _token_from_body(request: Request) -> Optional[str]:
    body = await request.body()
    if not body:
        return None
    if "application/json" in request.headers.get("content-type", ""):
        try:
            data = json.loads(body)
        except ValueError:
            return None
        return data.get("token") if isinstance(data, dict) else None
    values = parse_qs(body.decode("utf-8", errors="ignore")).get("token")
    return values[0] if values else None


@router.post("/unsubscribe", response_class=PlainTextResponse)
async def unsubscribe_one_click(
    request: Request,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """RFC 8058 one-click unsubscribe; the token comes from the query string or the body"""
    token_service = _token_service(settings)
    if token_service is None:
        return PlainTextResponse("Error", status_code=500)

    token = token or await _token_from_body(request)
    verification = token_service.verify(token)
    if not verification.valid:
        return PlainTextResponse("Invalid token", status_code=400)

    try:
        _unsubscribe(db, verification.email)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to unsubscribe {verification.email}: {e}")
        return PlainTextResponse("Error", status_code=500)

    return PlainTextResponse("OK", status_code=200)


@router.get("/verify-transports")
async def verify_all_transports(settings: Settings = Depends(get_app_settings)):
    """Connect and authenticate against every configured SMTP route"""
    results = await verify_transports(settings)
    return {
        "success": all(r["success"] for r in results.values()),
        "transports": results,
    }
