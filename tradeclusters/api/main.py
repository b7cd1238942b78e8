"""FastAPI application entry-point for the trade-cluster API.

Opens the trade store once at startup, wires the backfill orchestrator and
cluster aggregator onto ``app.state``, and closes the store at shutdown.
Run with:  uvicorn tradeclusters.api.main:app --host 0.0.0.0 --port 8000
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tradeclusters import __version__
from tradeclusters.analytics.clusters import ClusterAggregator
from tradeclusters.api.deps import limiter
from tradeclusters.api.routes import backfill, clusters, health
from tradeclusters.core.config import settings
from tradeclusters.core.utils.logging_config import configure_logging, get_logger
from tradeclusters.ingestion.backfill import BackfillOrchestrator
from tradeclusters.store import SqlTradeStore, TradeStore

logger = get_logger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness check"},
    {"name": "Backfill", "description": "Historical trade ingestion"},
    {"name": "Clusters", "description": "Price-bucket volume clusters"},
]


def create_app(store: Optional[TradeStore] = None) -> FastAPI:
    """Build the application.

    Args:
        store: Trade store to serve from. When omitted a SqlTradeStore on
            ``settings.database_url`` is created at startup.
    """

    # -----------------------------------------------------------------------
    # Lifespan -- run once at startup / shutdown
    # -----------------------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, settings.log_json)
        trade_store = store if store is not None else SqlTradeStore(settings.database_url)
        await trade_store.open()
        app.state.store = trade_store
        app.state.orchestrator = BackfillOrchestrator.from_settings(trade_store)
        app.state.aggregator = ClusterAggregator(trade_store)
        logger.info("api_started", store=type(trade_store).__name__)

        try:
            yield
        finally:
            await trade_store.close()
            logger.info("api_stopped")

    app = FastAPI(
        title=f"{settings.project_name} API",
        version=__version__,
        description=(
            "Backfills exchange trades into a local store and serves "
            "price-bucketed volume clusters."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(backfill.router, prefix="/api")
    app.include_router(clusters.router, prefix="/api")

    # Optional client UI; mounted last so /api routes take precedence
    if settings.web_dir and Path(settings.web_dir).is_dir():
        app.mount(
            "/",
            StaticFiles(directory=settings.web_dir, html=True),
            name="web",
        )

    return app


app = create_app()
