from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from newsletter.api import newsletters, subscriptions
from newsletter.config import Settings, get_settings
from newsletter.database import create_engine_for_database, create_session_maker, init_db
from newsletter.logging_config import configure_logging
from newsletter.middleware import RequestIdMiddleware
from newsletter.schemas.subscriber import parse_subscriber_email
from newsletter.services.credential_store import CredentialStore
from newsletter.services.email_client import EmailClient
from newsletter.services.hashing_pool import HashingPool
from newsletter.services.newsletter_dispatch import NewsletterDispatcher
from newsletter.services.subscription_service import SubscriptionService

# Configure structured logging
configure_logging()
logger = structlog.get_logger(__name__)


def build_email_client(settings: Settings) -> EmailClient:
    # Fail at startup rather than on the first send
    sender = parse_subscriber_email(settings.email_sender)
    return EmailClient(
        base_url=settings.email_base_url,
        sender=sender,
        authorization_token=settings.email_authorization_token,
        timeout=settings.email_client_timeout_milliseconds / 1000,
    )


def create_app(
    settings: Optional[Settings] = None,
    email_client: Optional[EmailClient] = None,
) -> FastAPI:
    """Build the application and every long-lived resource it needs.

    The engine (connection pool), email client and hashing pool are created
    here once and handed to the services; routes reach them through
    ``app.state`` dependencies.
    """
    settings = settings or get_settings()
    engine = create_engine_for_database(settings)
    store = CredentialStore(create_session_maker(engine))
    email_client = email_client or build_email_client(settings)
    hashing_pool = HashingPool(
        workers=settings.password_hash_workers,
        queue_factor=settings.password_hash_queue_factor,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: Initialize database
        await init_db(engine)
        logger.info("Database initialized")

        yield

        # Shutdown
        await email_client.aclose()
        hashing_pool.shutdown(wait=False)
        await engine.dispose()
        logger.info("Shutting down...")

    app = FastAPI(
        title="Newsletter API",
        description="Newsletter subscriptions with double opt-in and authenticated publishing",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None if settings.app_env == "production" else "/docs",
        redoc_url=None if settings.app_env == "production" else "/redoc",
        openapi_url=None if settings.app_env == "production" else "/openapi.json",
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.credential_store = store
    app.state.email_client = email_client
    app.state.hashing_pool = hashing_pool
    app.state.subscription_service = SubscriptionService(store, email_client, settings)
    app.state.newsletter_dispatcher = NewsletterDispatcher(store, email_client, hashing_pool)

    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        # Missing form fields, query parameters or body keys are client errors
        fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
        logger.info("Rejected malformed request", fields=fields)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request", "fields": fields},
        )

    app.include_router(subscriptions.router)
    app.include_router(newsletters.router)

    @app.get("/health_check")
    async def health_check():
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint that verifies database connectivity."""
        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "healthy", "database": "connected"}
        except (SQLAlchemyError, OSError, ConnectionError, TimeoutError) as e:
            logger.warning(f"Health check failed: {type(e).__name__}: {e}")
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "database": "disconnected"}
            )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("newsletter.main:app", host=settings.api_host, port=settings.api_port)
