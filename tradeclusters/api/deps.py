"""FastAPI dependencies resolving the shared services from ``app.state``.

The orchestrator and aggregator are built once in the application
lifespan; routes receive them through these providers so tests can swap them
with ``app.dependency_overrides``.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from tradeclusters.analytics.clusters import ClusterAggregator
from tradeclusters.ingestion.backfill import BackfillOrchestrator

limiter = Limiter(key_func=get_remote_address)


def get_orchestrator(request: Request) -> BackfillOrchestrator:
    return request.app.state.orchestrator


def get_aggregator(request: Request) -> ClusterAggregator:
    return request.app.state.aggregator
