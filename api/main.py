"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.routes import health
from api.routes.v1 import admin, applications, auth, content, jobs, profiles
from api.services.auth import AuthService
from core.config import settings
from core.identity import IdentityResolver, PrincipalChangeNotifier
from core.integrations.email import EmailService
from core.middleware import (
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)
from core.sessions import SessionStore, create_session_store
from core.storage import create_blob_storage
from core.storage.base import BlobStorage
from database.engine import AsyncSessionLocal, close_db, init_db

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


async def startup(
    app: FastAPI,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    session_store: Optional[SessionStore] = None,
    blob_storage: Optional[BlobStorage] = None,
    email_service: Optional[EmailService] = None,
) -> None:
    """
    Build the app's collaborators and store them on ``app.state``.

    Anything not passed in is built from settings.
    """
    notifier = PrincipalChangeNotifier()
    app.state.session_factory = session_factory or AsyncSessionLocal
    app.state.notifier = notifier
    app.state.session_store = session_store or create_session_store(settings.redis_url)
    app.state.blob_storage = blob_storage or create_blob_storage()
    app.state.email_service = email_service or EmailService()
    app.state.auth_service = AuthService(
        app.state.session_store, notifier, app.state.email_service
    )

    resolver = IdentityResolver(app.state.session_factory, notifier)
    await resolver.start()
    app.state.identity_resolver = resolver


async def shutdown(app: FastAPI) -> None:
    """Release what ``startup`` built."""
    await app.state.identity_resolver.close()
    await app.state.session_store.close()
    await app.state.blob_storage.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()
    await startup(app)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    await shutdown(app)
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="OpenToWork job board: postings, applications and moderation",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Setup error handlers (before middleware)
setup_error_handlers(app, debug=settings.debug)

# Add middleware (order matters - they execute in reverse order)
# 1. Error handling middleware (outermost - catches all errors)
app.add_middleware(
    ErrorHandlingMiddleware,
    debug=settings.debug,
)

# 2. Structured logging middleware (logs all requests/responses)
app.add_middleware(
    StructuredLoggingMiddleware,
    log_request_body=settings.log_request_body,
    max_body_size=settings.log_max_body_size,
)

# 3. CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check routes
app.include_router(health.router, tags=["Health"])

# API v1 routes
for router in (
    auth.router,
    jobs.router,
    applications.router,
    profiles.router,
    admin.router,
    content.router,
):
    app.include_router(router, prefix=settings.api_v1_prefix)

# Locally stored resumes are served from the public base URL
if settings.storage_backend == "local":
    app.mount(
        "/files",
        StaticFiles(directory=settings.storage_path, check_dir=False),
        name="files",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
