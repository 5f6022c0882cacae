#main __init__.py
"""
SPMS - session authentication, CSRF protection and routing core for the
Spare Parts Management System.

The application is a FastAPI app that serves a health endpoint itself and
hands every other request to a :class:`~spms.pipeline.RequestPipeline`.
"""

__version__ = "0.1.0"

import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from .auth import SQLAlchemyIdentityStore, UserCreate
from .auth.models import Role
from .auth.users import IdentityStore
from .controllers import register_controllers, register_routes
from .core.config import Settings, settings as default_settings
from .csrf import csrf_protect
from .db import Database
from .middleware import TimingMiddleware
from .pipeline import RequestPipeline
from .routing import Router
from .routing.controllers import ControllerRegistry
from .sessions import SessionManager
from .sessions.backends import SessionBackend, create_backend

# Initialize module-level logger; logging configuration is handled in `create_app`
logger = logging.getLogger(__name__)


class SpmsApp(FastAPI):
    """FastAPI application carrying the SPMS request pipeline."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = logging.getLogger(__name__)
        self.pipeline: Optional[RequestPipeline] = None
        self.database: Optional[Database] = None

    def mount_pipeline(self, pipeline: RequestPipeline) -> None:
        """Serve every path not handled by FastAPI itself through ``pipeline``."""
        self.pipeline = pipeline
        self.mount("/", pipeline)

    async def on_startup(self) -> None:
        self.logger.info("Starting up SPMS application...")
        if self.database is not None:
            self.logger.info("Initializing database schema...")
            await self.database.create_all()
        await self._create_initial_superuser()

    async def _create_initial_superuser(self) -> None:
        """Create the configured superuser if it does not exist yet."""
        settings = self.state.settings
        if not settings.SUPERUSER_PASSWORD:
            return

        store: IdentityStore = self.state.identity_store
        if await store.find_by_username_or_email(settings.SUPERUSER_USERNAME) is not None:
            self.logger.info("Superuser already exists, skipping creation")
            return

        await store.create_user(UserCreate(
            username=settings.SUPERUSER_USERNAME,
            email=settings.SUPERUSER_EMAIL,
            password=settings.SUPERUSER_PASSWORD,
            full_name="Administrator",
            role=Role.ADMIN,
        ))
        self.logger.info("Initial superuser created successfully")

    async def on_shutdown(self) -> None:
        self.logger.info("Shutting down SPMS application...")
        if self.pipeline is not None:
            await self.pipeline.session_manager.backend.close()
        if self.database is not None:
            await self.database.close()


def build_router(settings: Settings, debug: bool = False,
                 configure: Optional[Callable[[Router], None]] = None) -> Router:
    """Router with the CSRF check, the controllers and the default route table."""
    registry = register_controllers(ControllerRegistry())
    router = Router(base_path=settings.BASE_PATH, controllers=registry, debug=debug)
    router.add_global_middleware(csrf_protect())
    register_routes(router)
    if configure is not None:
        configure(router)
    return router


def create_app(
    settings: Optional[Settings] = None,
    identity_store: Optional[IdentityStore] = None,
    session_backend: Optional[SessionBackend] = None,
    database: Optional[Database] = None,
    debug: Optional[bool] = None,
    configure_routes: Optional[Callable[[Router], None]] = None,
    clock: Callable[[], float] = time.time,
    **kwargs
) -> SpmsApp:
    """
    Create and configure the SPMS application.

    Args:
        settings: Settings to use instead of the environment-derived defaults.
        identity_store: User store. Defaults to the SQLAlchemy store on ``database``.
        session_backend: Session storage. Defaults to ``SESSION_BACKEND``.
        database: Database to use. Created from ``DATABASE_URL`` when the
            default identity store is used.
        debug: Render error details in 500 responses. Defaults to ``DEBUG``.
        configure_routes: Called with the router to register extra routes
            before it is frozen.
        clock: Time source for session, lockout and CSRF expiry.
        **kwargs: Additional keyword arguments to pass to the FastAPI constructor.

    Returns:
        SpmsApp: The configured application instance.
    """
    settings = settings or default_settings
    debug = settings.DEBUG if debug is None else debug

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info(f"Creating {settings.APP_NAME} application (version: {__version__})")

    if identity_store is None:
        database = database or Database(settings.DATABASE_URL)
        identity_store = SQLAlchemyIdentityStore(database)

    @asynccontextmanager
    async def lifespan(app: SpmsApp):
        await app.on_startup()
        yield
        await app.on_shutdown()

    app = SpmsApp(
        title=settings.APP_NAME,
        version=__version__,
        debug=debug,
        lifespan=lifespan,
        **kwargs
    )
    app.database = database
    app.state.settings = settings
    app.state.identity_store = identity_store

    router = build_router(settings, debug=debug, configure=configure_routes)
    session_manager = SessionManager(
        session_backend if session_backend is not None
        else create_backend(settings.SESSION_BACKEND, settings.REDIS_URL),
        cookie_name=settings.SESSION_COOKIE_NAME,
        lifetime=settings.SESSION_LIFETIME,
    )
    pipeline = RequestPipeline(router, session_manager, identity_store, settings=settings, clock=clock)

    @app.get("/health", include_in_schema=True)
    async def health_check():
        """Health check endpoint."""
        health_status = {"status": "ok", "database": "not configured"}
        if app.database is not None:
            if await app.database.health_check():
                health_status["database"] = "connected"
            else:
                health_status["status"] = "degraded"
                health_status["database"] = "disconnected"
        return health_status

    app.add_middleware(TimingMiddleware)
    app.mount_pipeline(pipeline)
    logger.info(f"Application initialization complete ({len(router.routes)} routes)")
    return app


__all__ = ['SpmsApp', 'create_app', 'build_router', '__version__']
