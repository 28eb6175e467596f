"""
Helpdesk Triage - Main Application
==================================

Support-ticket triage service.

Tickets are classified, matched against the knowledge base and answered
with a drafted reply in the background. Confident tickets can be resolved
automatically; the rest are handed to a human. Every step is audited.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Agents, services and DTOs
- Domain: Entities, value objects and the decision engine
- Infrastructure: Database, LLM, config file, background worker
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from helpdesk.config import Settings, settings as default_settings
from helpdesk.core import ApplicationException

# Infrastructure
from helpdesk.infrastructure.database import (
    init_database, close_database, create_tables, get_session_maker
)

# Triage Module
from helpdesk.triage.infrastructure import build_runtime
from helpdesk.triage.interfaces import tickets_router, agent_router, kb_router, config_router

# Shared
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from helpdesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables (postgres backend only)
    3. Build the triage runtime
    4. Start the config watcher and the triage worker

    SHUTDOWN:
    1. Drain and stop the triage worker
    2. Stop the config watcher
    3. Close database connections
    """
    config: Settings = app.state.settings

    # === STARTUP ===
    setup_logging(config.log_level, config.environment)
    logger.info("Starting Helpdesk Triage", extra={
        "version": config.app_version,
        "environment": config.environment
    })

    session_maker = None
    if config.storage_backend == "postgres":
        logger.info("Initializing database")
        init_database(config)
        # Tables are created here for development; production uses migrations
        try:
            await create_tables()
            session_maker = get_session_maker()
        except Exception as e:
            logger.warning(
                "Database not available - running in degraded mode",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            await close_database()

    runtime = build_runtime(config, session_maker=session_maker)
    await runtime.start()
    app.state.runtime = runtime

    logger.info("Helpdesk Triage started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Triage")

    await runtime.stop(drain=True)
    app.state.runtime = None

    if session_maker is not None:
        await close_database()

    logger.info("Helpdesk Triage shutdown complete")


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Settings override; defaults to the environment-loaded settings
    """
    config = config or default_settings

    app = FastAPI(
        title="Helpdesk Triage API",
        description="""
    ## Automated Support-Ticket Triage

    ### Tickets
    - `POST /tickets` - Open a ticket (triage starts in the background)
    - `GET /tickets` - List tickets
    - `POST /tickets/{id}/reply`, `POST /tickets/{id}/assign`
    - `GET /tickets/{id}/audit` - Audit trail

    ### Triage Agent
    - `POST /agent/triage` - Re-run triage for a ticket
    - `GET /agent/suggestion/{ticket_id}` - Current suggestion with cited articles

    ### Knowledge Base and Configuration
    - `POST /kb/articles`, `GET /kb/articles`, `GET /kb/articles/{id}`
    - `GET /config`, `PUT /config` - Auto-close flag, confidence threshold, SLA hours

    ### Pipeline
    classify -> retrieve articles -> draft reply -> decide (auto-close or human)
    """,
        version=config.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = config
    app.state.environment = config.environment
    app.state.runtime = None

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(tickets_router)
    app.include_router(agent_router)
    app.include_router(kb_router)
    app.include_router(config_router)

    # === Health Check Endpoint ===

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "storage": "memory",
                            "agent_provider": "stub",
                            "worker": {"running": True, "queue_depth": 0, "submitted": 3,
                                       "completed": 3, "failed": 0, "recent_failures": []}
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports the storage backend, agent provider and triage worker state.
        """
        runtime = request.app.state.runtime
        if runtime is None:
            return {
                "status": "starting",
                "version": config.app_version,
                "environment": config.environment,
                "checks": {}
            }

        worker = runtime.worker.stats()
        degraded = config.storage_backend == "postgres" and runtime.storage_backend != "postgres"
        return {
            "status": "degraded" if degraded or not worker["running"] else "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "checks": {
                "storage": runtime.storage_backend,
                "agent_provider": runtime.agent_provider,
                "config_source": config.config_source,
                "worker": worker
            }
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": config.app_name,
            "version": config.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()


# === Development Entry Point ===

def run() -> None:
    """Serve the application with uvicorn using the loaded settings."""
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.environment == "development",
        log_level=default_settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
