# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.endpoints import (
    deadlines,
    document_types,
    evaluations,
    health,
    results,
    submissions,
    sweeps,
)
from app.core.config import settings
from app.core.exceptions import (
    BusinessRuleError,
    ConflictError,
    FypError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.logging_config import setup_logging
from app.db.init_db import init_db
from app.workers.scheduler import get_scheduler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = [
    (ValidationError, 422),
    (BusinessRuleError, 400),
    (ConflictError, 409),
    (ResourceNotFoundError, 404),
]


@app.exception_handler(FypError)
async def fyp_error_handler(request: Request, exc: FypError):
    status_code = 500
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            status_code = code
            break
    if status_code == 500:
        logger.error(f"Unhandled service error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    init_db()
    if settings.SCHEDULER_ENABLED:
        get_scheduler().start()


@app.on_event("shutdown")
def on_shutdown():
    get_scheduler().stop()


API_PREFIX = "/api/v1"

app.include_router(health.router, prefix=f"{API_PREFIX}/health")
app.include_router(document_types.router, prefix=API_PREFIX)
app.include_router(deadlines.router, prefix=API_PREFIX)
app.include_router(submissions.router, prefix=API_PREFIX)
app.include_router(evaluations.router, prefix=API_PREFIX)
app.include_router(results.router, prefix=API_PREFIX)
app.include_router(sweeps.router, prefix=API_PREFIX)
