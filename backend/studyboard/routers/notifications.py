"""Due-date digests, test emails and global search routes."""

import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session
from ..auth import get_current_user
from ..database import get_session
from ..config import settings
from ..schemas import NotificationCheckIn, NotificationTestIn
from ..services import DigestService, NotificationService, SearchService
from ..utils.mailer import EmailDeliveryError
from .. import models

router = APIRouter()
logger = logging.getLogger("studyboard.notifications")


@router.post("/api/notifications/check", tags=["notifications"])
def check_notifications(
    payload: Optional[NotificationCheckIn] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Email one digest of the caller's items due in the next 24 hours.

    Items already sent today are skipped. Returns
    `{"message": "No new notifications"}` when there is nothing new.
    """
    email = payload.email if payload else None
    try:
        return NotificationService(db).check(user, email=email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmailDeliveryError:
        logger.exception("digest delivery failed for user %s", user.id)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/api/notifications/test", tags=["notifications"])
def send_test_email(payload: NotificationTestIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Send a test message to `email` using the caller's email settings."""
    try:
        return NotificationService(db).send_test(user, payload.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmailDeliveryError:
        logger.exception("test email failed for user %s", user.id)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/api/cron/digest", tags=["notifications"])
def cron_digest(secret: Optional[str] = None, type: str = "morning", db: Session = Depends(get_session)):
    """Send the scheduled digest to every opted-in user.

    Called by a scheduler rather than a user session, so it is guarded by
    `CRON_SECRET` instead of a bearer token.
    """
    if not settings.CRON_SECRET or not hmac.compare_digest((secret or "").encode(), settings.CRON_SECRET.encode()):
        logger.warning("rejected digest trigger with a missing or wrong secret")
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return DigestService(db).run(type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/search", tags=["search"])
def search(q: Optional[str] = None, type: Optional[str] = None, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Search the caller's todos, projects, ideas, snippets, resources and tags."""
    try:
        return SearchService(db).search(user.id, q, type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
