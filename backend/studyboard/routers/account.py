"""Authentication, settings and account routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from ..auth import get_current_user
from ..database import get_session
from ..schemas import LoginIn, RegisterIn, SettingsIn, TokenOut
from .. import models, repositories, services

router = APIRouter()


@router.post("/auth/register", tags=["auth"])
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user.

    An email that is already registered is refused with 400.
    """
    if repositories.UserRepository(db).get_by_email(payload.email.strip().lower()):
        raise HTTPException(status_code=400, detail="email already registered")
    try:
        user = services.AuthService(db).register(payload.email, payload.password, payload.name)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="email already registered")
    return {"id": user.id, "email": user.email, "name": user.name}


@router.post("/auth/login", response_model=TokenOut, tags=["auth"])
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail="invalid credentials")
    return TokenOut(access_token=token)


@router.get("/api/settings", tags=["settings"])
def get_settings(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return the caller's settings, creating defaults on first access."""
    svc = services.SettingsService(db)
    return svc.to_public(svc.get(user.id))


@router.put("/api/settings", tags=["settings"])
def update_settings(payload: SettingsIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update the caller's settings; `current_sem_id` must be one of their semesters."""
    svc = services.SettingsService(db)
    try:
        row = svc.update(user.id, payload.model_dump(exclude_unset=True))
    except services.RecordNotFound:
        raise HTTPException(status_code=404, detail=services.NOT_FOUND)
    return svc.to_public(row)


@router.delete("/api/user", tags=["account"])
def delete_account(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete the caller and every record they own."""
    repositories.UserRepository(db).delete_with_owned_records(user)
    return {"success": True, "message": "Account deleted successfully"}
