"""Router factory for the ownership-scoped CRUD endpoints.

Each resource gets the same four controllers:

- GET    {path}          list the caller's records
- POST   {path}          create, body = field payload
- PUT    {path}          update, body = `id` + fields to change
- DELETE {path}?id=...   delete

Controllers stay thin: they check the session (via `get_current_user`),
call the resource's service and map service errors onto status codes.
"""

from typing import Callable, Optional, Type
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session
from ..auth import get_current_user
from ..database import get_session
from ..services import CrudService, NOT_FOUND, RecordNotFound
from .. import models

ServiceFactory = Callable[[Session], CrudService]


def build_crud_router(
    path: str,
    service_factory: ServiceFactory,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    methods=("GET", "POST", "PUT", "DELETE"),
) -> APIRouter:
    """Return an `APIRouter` exposing `methods` for one resource."""
    resource = path.rstrip("/").rsplit("/", 1)[-1]
    router = APIRouter(tags=[resource])

    def list_records(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        return service_factory(db).list(user.id)

    def create_record(payload: create_schema, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        try:
            return service_factory(db).create(user.id, payload.model_dump())
        except RecordNotFound:
            raise HTTPException(status_code=404, detail=NOT_FOUND)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    def update_record(payload: update_schema, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        if payload.id is None:
            raise HTTPException(status_code=400, detail="id is required")
        values = payload.model_dump(exclude_unset=True, exclude={"id"})
        try:
            return service_factory(db).update(user.id, payload.id, values)
        except RecordNotFound:
            raise HTTPException(status_code=404, detail=NOT_FOUND)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    def delete_record(id: Optional[int] = None, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        if id is None:
            raise HTTPException(status_code=400, detail="id is required")
        try:
            service_factory(db).delete(user.id, id)
        except RecordNotFound:
            raise HTTPException(status_code=404, detail=NOT_FOUND)
        return {"success": True}

    controllers = {"GET": list_records, "POST": create_record, "PUT": update_record, "DELETE": delete_record}
    for method in methods:
        endpoint = controllers[method]
        router.add_api_route(path, endpoint, methods=[method], name=f"{resource}_{endpoint.__name__}")
    return router
