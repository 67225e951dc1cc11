"""
main.py — Trade Desk dispatch service

Builds the FastAPI app: lifespan (logging, tables, status check, scheduler),
session + request-id middleware, rate limiting, exception handlers and the
dispatch router.

Business Rules:
- Every response carries X-Request-ID (uuid4 hex, 8 chars)
- Errors use the ErrorResponse shape {error, status_code, request_id}
- NotFoundError -> 404, StatusConfigurationError -> 500, StorageError -> 502
- The scheduler does not start when TESTING is set

Called by: uvicorn (tradedesk.main:app)
Depends on: routers/dispatch.py, database, logging_config, scheduler
"""

import asyncio
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .config import settings
from .database import SessionLocal, engine
from .exceptions import NotFoundError, StatusConfigurationError, StorageError
from .http_client import close_clients
from .logging_config import setup_logging
from .models import Base
from .rate_limit import limiter
from .routers import dispatch
from .schemas.errors import ErrorResponse
from .services.status_registry import get_status_registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    testing = bool(os.getenv("TESTING"))
    task = None
    if not testing:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            get_status_registry(db)
        except StatusConfigurationError as e:
            logger.error("Dispatch disabled until statuses are configured: {}", e.message)
        finally:
            db.close()

        from .scheduler import start_scheduler

        task = asyncio.create_task(start_scheduler())
    logger.info("Trade Desk started")
    yield
    if task:
        task.cancel()
    await close_clients()


app = FastAPI(title="Trade Desk", version="1.0.0", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _error(request: Request, status_code: int, error: str, detail: list | None = None) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", ""),
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": list(e.get("loc", [])), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return _error(request, 422, "Validation error", detail)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(request, 404, exc.message)


@app.exception_handler(StatusConfigurationError)
async def status_config_handler(request: Request, exc: StatusConfigurationError):
    logger.error("Status configuration error: {}", exc.message)
    return _error(request, 500, exc.message)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage error: {}", exc.message)
    return _error(request, 502, exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return _error(request, 500, "Internal server error")


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(dispatch.router)
