"""
Task Tracker - FastAPI Backend

Main application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from task_tracker import __version__
from task_tracker.auth.dependencies import SessionVerifier
from task_tracker.auth.routes import router as auth_router
from task_tracker.auth.service import AuthService
from task_tracker.auth.utils import PasswordHasher, TokenCodec
from task_tracker.config import Settings, get_settings
from task_tracker.errors import TaskTrackerError, Unauthenticated
from task_tracker.logging_setup import setup_logging
from task_tracker.routers.tasks import router as tasks_router
from task_tracker.routers.users import router as users_router
from task_tracker.services.firestore import TaskStore, UserStore, create_firestore_client
from task_tracker.services.mailer import SmtpMailer
from task_tracker.services.notifications import DueDateNotifier, Mailer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    notifier: DueDateNotifier = app.state.notifier

    if settings.scheduler_enabled:
        notifier.start()
    try:
        yield
    finally:
        await notifier.stop()


async def handle_app_error(request: Request, exc: TaskTrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": errors})


def create_app(
    settings: Optional[Settings] = None,
    *,
    db=None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """
    Build the application.

    The Firestore client and SMTP mailer are created from settings unless
    passed in. Components are built once here and shared by all requests.
    """
    settings = settings or get_settings()

    db = db if db is not None else create_firestore_client(settings)
    mailer = mailer if mailer is not None else SmtpMailer.from_settings(settings)

    users = UserStore(db)
    tasks = TaskStore(db)
    tokens = TokenCodec(settings.jwt_secret, settings.jwt_algorithm)
    hasher = PasswordHasher(settings.hash_secret)

    app = FastAPI(
        title=settings.app_name,
        description="Per-user task tracking with daily due-date reminders.",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.users = users
    app.state.tasks = tasks
    app.state.auth = AuthService(users, hasher, tokens)
    app.state.verifier = SessionVerifier(tokens, users)
    app.state.notifier = DueDateNotifier(
        users,
        tasks,
        mailer,
        tz_name=settings.timezone,
        hour=settings.notify_hour,
        minute=settings.notify_minute,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TaskTrackerError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    # Include routers
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
    app.include_router(users_router, prefix="/user", tags=["User"])
    app.include_router(tasks_router, prefix="/task", tags=["Tasks"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "app": settings.app_name}

    return app


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    import uvicorn

    settings = get_settings()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8080, log_config=None)


if __name__ == "__main__":
    run()
