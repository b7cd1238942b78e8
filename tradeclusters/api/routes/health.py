"""Liveness endpoint."""

from fastapi import APIRouter

from tradeclusters.connectors.base import now_ms

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic liveness check with the server clock in epoch milliseconds."""
    return {"ok": True, "now": now_ms()}
