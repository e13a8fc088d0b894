"""FastAPI application entrypoint.

This module builds the Study Board API: logging, CORS, the request
context middleware, error shaping and router registration. Controllers
live in `studyboard.routers` and are intentionally thin: they check the
session, delegate to services, and return JSON responses.

Every error body has the shape `{"error": "<message>"}`:
- 400 missing or invalid input (the offending field is named)
- 401 missing or invalid session
- 404 record missing or owned by another user (deliberately merged)
- 500 unexpected failure, logged server-side, opaque to the caller
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import json
import logging
import time
import uuid
from .config import settings
from .database import create_db_and_tables
from .routers import register_routers

app = FastAPI(title="Study Board API")
logger = logging.getLogger("studyboard.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()
register_routers(app)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api") or request.url.path.startswith("/auth"):
        context["status_code"] = response.status_code
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


def _describe_validation_error(err: dict) -> str:
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query")]
    field = ".".join(loc) or "body"
    if err.get("type") == "missing":
        return f"{field} is required"
    return f"invalid {field}: {err.get('msg', 'invalid value')}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = _describe_validation_error(errors[0]) if errors else "invalid request"
    return _error(400, message)


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(
        "storage_failure %s",
        json.dumps({"request_id": getattr(request.state, "request_id", ""), "path": request.url.path}, ensure_ascii=True),
        exc_info=exc,
    )
    return _error(500, "Internal Server Error")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_error path=%s", request.url.path, exc_info=exc)
    return _error(500, "Internal Server Error")


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
