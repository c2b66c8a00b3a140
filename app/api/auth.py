"""Authentication for the management endpoints and the Twilio webhooks."""
import logging
import secrets
from typing import Optional
from fastapi import Header, HTTPException, Request
from twilio.request_validator import RequestValidator

from app.core.config import settings

logger = logging.getLogger(__name__)


def verify_api_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of a provided key against the configured one."""
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


async def require_api_key(x_api_key: Optional[str] = Header(None)) -> bool:
    """Dependency to require a valid X-API-Key header."""
    if not settings.api_key:
        raise HTTPException(status_code=503, detail="API_KEY not configured")
    if not verify_api_key(x_api_key, settings.api_key):
        logger.warning("[AUTH] Rejected request with missing or invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
    return True


def signed_url(request: Request) -> str:
    """
    The URL Twilio signed for this request.

    Twilio signs the public URL it called, which differs from the request URL
    behind a tunnel or proxy, so PHONE_WEBHOOK_URL takes precedence.
    """
    if settings.phone_webhook_url:
        url = settings.phone_webhook_url.rstrip("/") + request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url
    return str(request.url)


async def validate_twilio_signature(request: Request) -> bool:
    """Dependency to require a valid X-Twilio-Signature on voice webhooks."""
    if not settings.twilio_validate_signatures:
        return True

    signature = request.headers.get("X-Twilio-Signature", "")
    if not signature:
        logger.warning(f"[AUTH] Missing X-Twilio-Signature - Path: {request.url.path}")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")

    # POST bodies are signed as form params; GET requests are signed by URL alone
    params = dict(await request.form()) if request.method == "POST" else {}

    validator = RequestValidator(settings.twilio_auth_token)
    if not validator.validate(signed_url(request), params, signature):
        logger.warning(f"[AUTH] Invalid X-Twilio-Signature - Path: {request.url.path}")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")
    return True
