"""
Name: FastAPI Application Factory

Responsibilities:
  - Build the FastAPI app around an explicit AuthContainer
  - Configure middleware (request context, body limit, security headers, CORS)
  - Mount /auth and /users routers, /healthz and /metrics
  - Lifespan: DB pool, expired-token pruning, dev admin seeding

Collaborators:
  - container.py: build_container()
  - api/auth_routes.py, api/user_routes.py
  - api/exception_handlers.py

Notes:
  - Run with: uvicorn postflow.api.main:create_app --factory
  - Middleware order matters: CORS -> RequestContext -> SecurityHeaders -> BodyLimit -> routes
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from ..application.dev_seed_admin import ensure_dev_admin
from ..container import AuthContainer, build_container
from ..crosscutting.config import Settings, get_settings
from ..crosscutting.logger import logger
from ..crosscutting.metrics import get_metrics_response
from ..crosscutting.middleware import BodyLimitMiddleware, RequestContextMiddleware
from ..crosscutting.security import SecurityHeadersMiddleware
from ..identity.access_control import NEW_ACCESS_TOKEN_HEADER, require_roles
from ..identity.passwords import hash_password
from ..identity.users import UserRole
from ..infrastructure.db.pool import close_pool, init_pool, ping
from .auth_routes import debug_router
from .auth_routes import router as auth_router
from .exception_handlers import register_exception_handlers
from .user_routes import router as user_router


def _uses_postgres(settings: Settings) -> bool:
    return settings.auth_store_backend == "postgres"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    container: AuthContainer = app.state.container
    settings = container.settings

    if _uses_postgres(settings):
        init_pool(
            database_url=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    container.auth_service.prune_expired_tokens()
    ensure_dev_admin(
        settings,
        user_repo=container.users,
        password_hasher=hash_password,
    )

    logger.info(
        "Postflow auth API starting up",
        extra={
            "app_env": settings.app_env,
            "store_backend": settings.auth_store_backend,
            "access_ttl_seconds": settings.jwt_access_ttl_seconds,
            "refresh_ttl_days": settings.jwt_refresh_ttl_days,
            "rate_limit_enabled": settings.is_rate_limiting_enabled(),
            "debug_routes": settings.enable_debug_routes,
        },
    )
    yield

    if _uses_postgres(settings):
        close_pool()
    logger.info("Postflow auth API shutting down")


def _register_ops_routes(app: FastAPI, settings: Settings) -> None:
    @app.get("/healthz", tags=["ops"])
    def healthz(request: Request):
        """R: Liveness plus a DB round-trip when the postgres backend is active."""
        db_status = "not_configured"
        if _uses_postgres(settings):
            db_status = "disconnected"
            try:
                ping()
                db_status = "connected"
            except Exception as e:
                logger.warning("Health check: DB unavailable", extra={"error": str(e)})

        return {
            "ok": db_status != "disconnected",
            "db": db_status,
            "request_id": getattr(request.state, "request_id", None),
        }

    metrics_dependencies = []
    if settings.metrics_require_auth:
        metrics_dependencies.append(Depends(require_roles(UserRole.ADMIN.value)))

    @app.get("/metrics", tags=["ops"], dependencies=metrics_dependencies)
    def metrics():
        body, content_type = get_metrics_response()
        return Response(content=body, media_type=content_type)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[AuthContainer] = None,
) -> FastAPI:
    """
    R: Build a fully wired application.

    Args:
        settings: Defaults to get_settings() (environment)
        container: Pre-built container (tests inject in-memory stores / clocks)
    """
    if container is None:
        settings = settings or get_settings()
        container = build_container(settings)
    settings = container.settings

    app = FastAPI(
        title="Postflow Auth API",
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "auth", "description": "Dual-token authentication (JWT)"},
            {"name": "users", "description": "User administration (ADMIN)"},
            {"name": "ops", "description": "Health and metrics"},
        ],
    )
    app.state.container = container

    app.add_middleware(BodyLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production())
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
        expose_headers=[NEW_ACCESS_TOKEN_HEADER, "X-Request-Id"],
    )

    app.include_router(auth_router)
    app.include_router(user_router)
    if settings.enable_debug_routes:
        app.include_router(debug_router)

    register_exception_handlers(app, expose_errors=not settings.is_production())
    _register_ops_routes(app, settings)
    return app
