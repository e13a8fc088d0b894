"""Transactional email delivery.

`EMAIL_BACKEND` chooses the transport:
  - "log" (default): writes the message to the application log
  - "resend": posts the message to the Resend REST API
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

import requests

from ..config import settings

_LOGGER = logging.getLogger("studyboard.mailer")


class EmailDeliveryError(RuntimeError):
    """The email API rejected the message or could not be reached."""


def resolve_api_key(user_key: Optional[str]) -> Optional[str]:
    """A key stored in the user's settings wins over the server-wide key."""
    return user_key or settings.RESEND_API_KEY or None


def send_email(to: str, subject: str, html: str, api_key: Optional[str] = None) -> str:
    """Send one email and return the provider's message id.

    Raises ValueError when the resend backend has no API key and
    EmailDeliveryError when delivery fails.
    """
    if settings.EMAIL_BACKEND == "log":
        message_id = f"log-{uuid.uuid4().hex}"
        _LOGGER.info("EMAIL [to=%s id=%s] subject=%s\n%s", to, message_id, subject, html)
        return message_id

    if not api_key:
        raise ValueError("email service not configured; add a Resend API key in settings")
    try:
        resp = requests.post(
            settings.RESEND_API_URL,
            json={"from": settings.MAIL_FROM, "to": [to], "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=15,
        )
    except requests.RequestException as exc:
        raise EmailDeliveryError(f"email API unreachable: {exc}") from exc
    if resp.status_code >= 400:
        raise EmailDeliveryError(f"email API returned {resp.status_code}: {resp.text[:200]}")
    return resp.json().get("id", "")
