"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1 import auth, notifications, reminders, todos
from app.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import setup_logging
from app.database import close_db, engine, init_db
from app.middleware.metrics import setup_metrics
from app.models.todo import TodoValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)


def _error_response(status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None), errors=errors)


def _format_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
    return f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid value")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(400, "Validation failed", errors=[_format_validation_error(error) for error in exc.errors()])


@app.exception_handler(TodoValidationError)
async def todo_validation_handler(request: Request, exc: TodoValidationError):
    return _error_response(400, "Validation failed", errors=exc.errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error", error=str(exc) if settings.DEBUG else None)


# Include routers
app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["auth"])
app.include_router(todos.router, prefix=f"{settings.API_V1_PREFIX}/todo", tags=["todo"])
app.include_router(
    notifications.router,
    prefix=f"{settings.API_V1_PREFIX}/users/me/notifications",
    tags=["notifications"],
)
app.include_router(reminders.router, prefix=f"{settings.API_V1_PREFIX}/reminders", tags=["reminders"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    import redis.asyncio as aioredis

    health_status = {
        "status": "ok",
        "checks": {
            "database": "unknown",
            "redis": "unknown",
        },
    }

    # Check database
    try:
        async with engine.begin() as conn:
            await conn.execute(select(1))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"error: {str(e)}"
        health_status["status"] = "degraded"

    # Check Redis (broker for the reminder workers)
    try:
        async with aioredis.from_url(settings.REDIS_URL) as client:
            await client.ping()
        health_status["checks"]["redis"] = "ok"
    except Exception as e:
        health_status["checks"]["redis"] = f"error: {str(e)}"
        health_status["status"] = "degraded"

    return health_status
