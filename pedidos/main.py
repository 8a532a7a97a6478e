from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pedidos import __version__
from pedidos.api.auth import router as auth_router
from pedidos.api.metrics import router as metrics_router
from pedidos.api.orders import router as orders_router
from pedidos.config import Settings, get_settings
from pedidos.db.session import Database
from pedidos.observability.logging import configure_logging
from pedidos.observability.metrics import MetricsRecorder
from pedidos.observability.middleware import RequestContextMiddleware
from pedidos.observability.store import MetricsStore, SqlMetricsStore
from pedidos.services.auth_service import (
    Authenticator,
    CredentialVerifier,
    IdentityProviderVerifier,
    LocalTokenVerifier,
)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse(status_code=422, content={"detail": "Validation failed", "errors": errors})


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    metrics_store: MetricsStore | None = None,
    provider_verifier: CredentialVerifier | None = None,
) -> FastAPI:
    """Build the API with its long-lived collaborators.

    Anything not passed in is built from settings. The database is disposed on
    shutdown only when this function created it.
    """

    settings = settings or get_settings()
    owns_database = database is None
    database = database or Database(settings.database_url)
    metrics_store = metrics_store or SqlMetricsStore(database)
    provider_verifier = provider_verifier or IdentityProviderVerifier(
        audience=settings.firebase_project_id,
        issuer=settings.firebase_issuer,
        jwks_url=settings.firebase_jwks_url,
    )
    recorder = MetricsRecorder(metrics_store)
    verifiers: list[CredentialVerifier] = [LocalTokenVerifier(settings.jwt_secret)]
    if settings.auth_accept_provider_tokens:
        verifiers.append(provider_verifier)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        if settings.auto_create_schema:
            database.create_all()
        yield
        await recorder.drain()
        if owns_database:
            database.dispose()

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.metrics_store = metrics_store
    app.state.metrics_recorder = recorder
    app.state.provider_verifier = provider_verifier
    app.state.authenticator = Authenticator(verifiers)

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it wraps everything else and sees every response.
    app.add_middleware(
        RequestContextMiddleware,
        recorder=recorder,
        excluded_paths=settings.metrics_excluded_paths,
    )

    app.include_router(auth_router)
    app.include_router(orders_router)
    app.include_router(metrics_router)

    @app.get("/")
    async def index() -> dict[str, object]:
        now = datetime.now(timezone.utc)
        return {
            "ok": True,
            "api": f"{settings.app_name} v{__version__}",
            "day": now.date().isoformat(),
            "timestamp": now.isoformat(),
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
