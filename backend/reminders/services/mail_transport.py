"""Digest email delivery via the HTTP mail relay."""

import logging

import httpx

from reminders.config import Settings, settings as default_settings
from reminders.schemas.reminders import DigestEmail
from reminders.services.http_client import get_http_client

logger = logging.getLogger(__name__)


def _subject(digest: DigestEmail) -> str:
    count = len(digest.announcements)
    noun = "deadline" if count == 1 else "deadlines"
    return f"{count} upcoming {noun} | Sarkari Result"


def build_digest_request(digest: DigestEmail, settings: Settings) -> dict:
    """JSON body for the mail relay."""
    base = settings.frontend_url.rstrip("/")
    return {
        "from": settings.mail_from,
        "to": digest.email,
        "subject": _subject(digest),
        "template": f"digest-{digest.frequency}",
        "data": {
            "window_label": digest.window_label,
            "frequency": digest.frequency,
            "announcements": [
                {
                    **item.model_dump(mode="json"),
                    "url": f"{base}/?item={item.slug}",
                }
                for item in digest.announcements
            ],
            "unsubscribe_url": f"{base}/unsubscribe?token={digest.unsubscribe_token}",
        },
        "headers": {
            "List-Unsubscribe": f"<{base}/unsubscribe?token={digest.unsubscribe_token}>",
        },
    }


async def send_digest_email(
    digest: DigestEmail,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> bool:
    """POST the digest to the mail relay. True = accepted for delivery; errors are logged and return False."""
    settings = settings or default_settings
    if not settings.mail_configured:
        logger.info("Mail relay not configured, skipping digest to %s", digest.email)
        return False
    headers = {}
    if settings.mail_api_key:
        headers["Authorization"] = f"Bearer {settings.mail_api_key}"
    try:
        client = client or get_http_client()
        response = await client.post(
            settings.mail_api_url,
            json=build_digest_request(digest, settings),
            headers=headers,
            timeout=settings.mail_timeout_seconds,
        )
    except httpx.HTTPError as e:
        logger.warning("Digest email to %s failed: %s", digest.email, e)
        return False
    if not response.is_success:
        logger.warning("Digest email to %s rejected: HTTP %s", digest.email, response.status_code)
        return False
    return True
