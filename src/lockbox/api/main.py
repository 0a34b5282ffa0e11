# Lockbox - FastAPI Backend
#
# REST API in front of the credential operations. The web UI (a separate
# front end) talks to these endpoints.
#
# The user store is opened when the app starts and closed when it stops;
# it is owned by the app, not cached at module level.

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, load_settings
from ..core import AuditLogger, EventSeverity, EventType, configure_audit_logger, parse_database_url
from ..db import UserStore
from ..exceptions import StorageError
from ..vault import CipherService, CredentialOperations
from .bank_routes import router as bank_router
from .security import SessionRegistry
from .user_routes import router as user_router

logger = logging.getLogger(__name__)

# Local front-end dev servers
_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[UserStore] = None,
    cipher: Optional[CipherService] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded from the environment when omitted and a store or
            cipher still has to be built
        store: Pre-built (not necessarily open) user store
        cipher: Pre-built cipher service
        audit_logger: Audit sink; defaults to one writing to
            settings.audit_log_dir

    Raises:
        ConfigurationError: If required settings are missing
    """
    if settings is None and (store is None or cipher is None):
        settings = load_settings()

    if store is None:
        store = UserStore(parse_database_url(settings.database_url))
    if cipher is None:
        cipher = CipherService(settings.encryption_key)
    if audit_logger is None:
        audit_logger = configure_audit_logger(settings.audit_log_dir if settings else None)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.open()
        audit_logger.log_event(
            event_type=EventType.SYSTEM_START,
            severity=EventSeverity.INFO,
            message="Lockbox API starting",
            details={"version": __version__},
        )
        try:
            yield
        finally:
            store.close()
            audit_logger.log_event(
                event_type=EventType.SYSTEM_STOP,
                severity=EventSeverity.INFO,
                message="Lockbox API stopped",
            )

    app = FastAPI(
        title="Lockbox API",
        description="Encrypted vault for banking credentials",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.operations = CredentialOperations(store, cipher, audit_logger)
    app.state.sessions = SessionRegistry()

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "Storage unavailable.", "code": exc.code},
        )

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": __version__, "store_open": store.is_open}

    app.include_router(user_router)
    app.include_router(bank_router)

    return app


def start_api_server(settings: Settings):
    """Run the API with uvicorn (blocking)."""
    app = create_app(settings)
    logger.info(f"Starting Lockbox API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")
