"""FastAPI application for the gradebook service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gradebook.api.v1.router import api_router
from gradebook.core.config import settings
from gradebook.core.database import engine
from gradebook.core.exceptions import AppException
from gradebook.core.scheduler import relay_status, start_scheduler, stop_scheduler
from gradebook.middleware.logging import RequestLoggingMiddleware

QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "apscheduler")


def configure_logging() -> None:
    level = logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    """Error envelope shared with ``AppException.detail``."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message, "details": details or {}},
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors with non-JSON context values stringified."""
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    start_scheduler()
    yield
    logger.info(f"Stopping {settings.APP_NAME}, audit relay {relay_status()}")
    stop_scheduler()
    engine.dispose()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            422,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(500, "INTERNAL_ERROR", "An internal server error occurred")


def create_application() -> FastAPI:
    """Build the app: middleware, error envelope, health and the v1 API."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
Exam lifecycle, marks ledger and grading for schools.

Exams move `draft → scheduled → ongoing → completed → published`. Marks on
completed or published exams are closed to teachers; admins edit them only
after an audited unlock or with an explicit override. Every percentage is
graded on the fixed 9-point scale.

Requests carry `Authorization: Bearer <token>` issued by the identity
service; the token subject is the staff id. Failures use the envelope
`{"success": false, "error": {"code", "message", "details"}}`.
        """,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "audit_relay": relay_status(),
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gradebook.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
