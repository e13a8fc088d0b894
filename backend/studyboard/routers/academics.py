"""Syllabus and retention analytics routes."""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session
from ..auth import get_current_user
from ..database import get_session
from ..schemas import SyllabusBulkIn, SyllabusModuleUpdate
from ..services import NOT_FOUND, RecordNotFound, RetentionService, SyllabusService
from .. import models

router = APIRouter(tags=["syllabus"])


@router.get("/api/syllabus")
def list_syllabus(subject_id: Optional[int] = None, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List the modules of one subject in syllabus order."""
    if subject_id is None:
        raise HTTPException(status_code=400, detail="subject_id is required")
    return SyllabusService(db).list_for_subject(user.id, subject_id)


@router.post("/api/syllabus")
def save_syllabus(payload: SyllabusBulkIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Replace (default) or append a subject's module list."""
    modules = [m.model_dump() for m in payload.modules]
    try:
        written = SyllabusService(db).save_modules(user.id, payload.subject_id, modules, mode=payload.mode)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return {"success": True, "count": written}


@router.api_route("/api/syllabus", methods=["PUT", "PATCH"])
def update_syllabus_module(payload: SyllabusModuleUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update one module; marking it Completed/Revised stamps `last_studied_at`."""
    if payload.id is None:
        raise HTTPException(status_code=400, detail="id is required")
    values = payload.model_dump(exclude_unset=True, exclude={"id"})
    try:
        return SyllabusService(db).update(user.id, payload.id, values)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)


@router.delete("/api/syllabus")
def delete_syllabus_module(id: Optional[int] = None, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    if id is None:
        raise HTTPException(status_code=400, detail="id is required")
    try:
        SyllabusService(db).delete(user.id, id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return {"success": True}


@router.get("/api/analytics/retention", tags=["analytics"])
def retention(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Rank the caller's Completed/Revised modules by estimated retention.

    Lowest retention (most urgent to revise) comes first.
    """
    return RetentionService(db).ranking(user.id)
