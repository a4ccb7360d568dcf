"""TaskNestle FastAPI application."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import Settings, get_settings
from ..database import create_session_factory
from ..errors import TaskNestleError
from ..notifications import Mailer
from .routers import auth, comments, invitations, projects, tasks

logger = logging.getLogger("tasknestle.api")


def _error_response(status_code: int, message: str, errors: Optional[list] = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query"/"path" segment
        loc = [str(part) for part in error.get("loc", ())[1:]]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc), "message": message})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """Map application errors onto the ``{success: false, ...}`` envelope."""

    @app.exception_handler(TaskNestleError)
    async def handle_app_error(request: Request, exc: TaskNestleError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return _error_response(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning(f"Validation failed for {request.method} {request.url.path}: {errors}")
        return _error_response(400, "Validation failed", errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return _error_response(500, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Configuration; defaults to ``get_settings()``
        mailer: Outgoing mail; defaults to an SMTP ``Mailer`` for ``settings``

    Returns:
        Configured FastAPI app with settings, session factory and mailer on ``app.state``
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Project and task management with role-based access and email invitations",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.session_factory = create_session_factory(settings)
    app.state.mailer = mailer or Mailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth")
    app.include_router(projects.router, prefix="/api/projects")
    app.include_router(tasks.router, prefix="/api/tasks")
    app.include_router(comments.router, prefix="/api/comments")
    app.include_router(invitations.router, prefix="/api/invitations")

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "description": "Project and task management API",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    logger.info(f"Created {settings.app_name} application")
    return app
