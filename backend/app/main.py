"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine.Engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from app.agents_config import load_agents_config, seed_agents
from app.api import router
from app.clients.kraken_rest import KrakenRestClient
from app.config import get_settings
from app.services import AgentService, MarketScanner, SignalNotifier
from app.storage import PostgresSchedulerStore, SignalRepository, get_database, init_database
from scheduler.errors import AgentNotFoundError, AgentValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting signal engine...")
    settings = get_settings()

    db_initialized = False
    market_data: KrakenRestClient | None = None
    notifier: SignalNotifier | None = None

    try:
        # Initialize database with timeout
        try:
            await asyncio.wait_for(init_database(), timeout=30)
            db_initialized = True
            logger.info("Database initialized")
        except asyncio.TimeoutError:
            raise RuntimeError("Database initialization timed out after 30s")

        store = PostgresSchedulerStore()
        market_data = KrakenRestClient(
            base_url=settings.kraken_base_url,
            calls_per_minute=settings.kraken_calls_per_minute,
        )
        notifier = SignalNotifier(
            webhook_url=settings.alert_webhook_url,
            min_confidence=settings.alert_min_confidence,
            timeout=settings.alert_timeout_seconds,
        )

        app.state.store = store
        app.state.signal_repo = SignalRepository()
        app.state.market_data = market_data
        app.state.notifier = notifier
        app.state.scanner = MarketScanner(market_data, settings.scanner_instruments)

        if settings.agents_file:
            agents_config = load_agents_config(Path(settings.agents_file))
            await seed_agents(AgentService(store), agents_config)

        logger.info(
            f"Alerts: {'webhook' if notifier.enabled else 'disabled'}, "
            f"worker batch size {settings.worker_batch_size}"
        )
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        if market_data:
            await market_data.close()
        if db_initialized:
            try:
                await get_database().close()
            except Exception as cleanup_err:
                logger.warning(f"Error closing database: {cleanup_err}")
        raise  # Re-raise to prevent app from starting in broken state

    yield

    # Shutdown
    logger.info("Shutting down...")
    await notifier.close()
    await market_data.close()

    try:
        await get_database().close()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Shutdown complete")


async def _not_found_handler(request: Request, exc: AgentNotFoundError):
    return ORJSONResponse(status_code=404, content={"detail": str(exc)})


async def _validation_handler(request: Request, exc: AgentValidationError):
    return ORJSONResponse(
        status_code=422,
        content={"detail": str(exc), "errors": exc.errors},
    )


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application."""
    # Create FastAPI app with orjson for faster JSON serialization
    app = FastAPI(
        title="Signal Engine",
        description="Technical-analysis signals, backtests and scheduled agents",
        version="0.1.0",
        lifespan=lifespan if with_lifespan else None,
        default_response_class=ORJSONResponse,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AgentNotFoundError, _not_found_handler)
    app.add_exception_handler(AgentValidationError, _validation_handler)

    # Include REST routes
    app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"name": "Signal Engine", "version": "0.1.0", "docs": "/docs"}

    return app


app = create_app()


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
