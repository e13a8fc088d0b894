"""Registry of the per-user CRUD resources.

Every entry maps a route to the service that owns the entity and the
request schemas used for create and update. List order follows each
entity's recency field. Todos get their own list route for the view, tag
and text filters.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session
from ..auth import get_current_user
from ..database import get_session
from .. import models, schemas, services
from ..repositories import OwnedRepository
from .crud import build_crud_router


def _plain(model, *order_by):
    """Factory for a `CrudService` with no entity-specific rules."""
    return lambda db: services.CrudService(db, OwnedRepository(db, model, order_by))


def _newest_first(model):
    return _plain(model, model.created_at.desc(), model.id.desc())


def _tagged(model, item_type, *order_by):
    """Factory for a `TaggedCrudService`; `order_by` defaults to newest first."""
    order_by = order_by or (model.created_at.desc(), model.id.desc())
    return lambda db: services.TaggedCrudService(db, OwnedRepository(db, model, order_by), item_type)


RESOURCES = (
    ("/api/assignments", _newest_first(models.Assignment), schemas.AssignmentIn, schemas.AssignmentUpdate),
    (
        "/api/exams",
        lambda db: services.ExamService(db, OwnedRepository(db, models.Exam, (models.Exam.date.asc(), models.Exam.id.asc()))),
        schemas.ExamIn,
        schemas.ExamUpdate,
    ),
    ("/api/ideas", _tagged(models.Idea, "idea"), schemas.IdeaIn, schemas.IdeaUpdate),
    ("/api/library", _plain(models.Book, models.Book.updated_at.desc(), models.Book.id.desc()), schemas.BookIn, schemas.BookUpdate),
    ("/api/logs", _plain(models.DailyLog, models.DailyLog.date.desc(), models.DailyLog.id.desc()), schemas.DailyLogIn, schemas.DailyLogUpdate),
    ("/api/projects", _tagged(models.Project, "project"), schemas.ProjectIn, schemas.ProjectUpdate),
    ("/api/resources", _tagged(models.Resource, "resource", models.Resource.id.asc()), schemas.ResourceIn, schemas.ResourceUpdate),
    ("/api/schedule", _plain(models.ScheduleEvent), schemas.ScheduleEventIn, schemas.ScheduleEventUpdate),
    ("/api/semesters", services.SemesterService, schemas.SemesterIn, schemas.SemesterUpdate),
    ("/api/academics", _newest_first(models.Subject), schemas.SubjectIn, schemas.SubjectUpdate),
    ("/api/snippets", _tagged(models.Snippet, "snippet"), schemas.SnippetIn, schemas.SnippetUpdate),
    ("/api/tags", services.TagService, schemas.TagIn, schemas.TagUpdate),
)

router = APIRouter()
for path, factory, create_schema, update_schema in RESOURCES:
    router.include_router(build_crud_router(path, factory, create_schema, update_schema))

router.include_router(build_crud_router(
    "/api/todos", services.TodoService, schemas.TodoIn, schemas.TodoUpdate, methods=("POST", "PUT", "DELETE"),
))


@router.get("/api/todos", tags=["todos"])
def list_todos(
    view: Optional[str] = None,
    tag_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """List top-level todos with nested `subtasks` and `tags`.

    `view` is one of all, inbox, today, upcoming or completed.
    """
    try:
        return services.TodoService(db).list(user.id, view=view, tag_id=tag_id, search=search)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
