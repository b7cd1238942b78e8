"""Backfill trigger endpoint.

Runs the backfill inside the request and answers once every window has been
processed. Validation failures map to 400, anything escaping the
orchestrator to 500; both use the ``{"error": ...}`` envelope.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tradeclusters.api.deps import get_orchestrator, limiter
from tradeclusters.core.config import settings
from tradeclusters.core.exceptions import InvalidRequestError
from tradeclusters.core.utils.logging_config import get_logger
from tradeclusters.ingestion.backfill import BackfillOrchestrator

logger = get_logger(__name__)

router = APIRouter(tags=["Backfill"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------
class BackfillRequest(BaseModel):
    symbol: Optional[str] = None
    exchange: Optional[str] = None
    start_ts: Optional[int] = Field(default=None, alias="startTs")
    end_ts: Optional[int] = Field(default=None, alias="endTs")


class WindowErrorOut(BaseModel):
    start: int
    end: int
    attempts: int
    error: str


class BackfillResponse(BaseModel):
    ok: bool
    message: str
    complete: bool
    fetched: int
    written: int
    skipped: int
    windows: int
    errors: list[WindowErrorOut]


# ---------------------------------------------------------------------------
# POST /api/backfill
# ---------------------------------------------------------------------------
@router.post("/backfill", response_model=BackfillResponse)
@limiter.limit(settings.backfill_rate_limit)
async def run_backfill(
    request: Request,
    body: BackfillRequest,
    orchestrator: BackfillOrchestrator = Depends(get_orchestrator),
):
    """Backfill one symbol on one exchange and report what was written."""
    try:
        result = await orchestrator.backfill(
            body.symbol or "",
            body.exchange or "",
            start_ms=body.start_ts,
            end_ms=body.end_ts,
        )
    except InvalidRequestError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except Exception as exc:
        logger.exception(
            "backfill_request_failed",
            symbol=body.symbol,
            exchange=body.exchange,
        )
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return BackfillResponse(
        ok=True,
        message=result.message,
        complete=result.complete,
        fetched=result.fetched,
        written=result.written,
        skipped=result.skipped,
        windows=result.windows,
        errors=[
            WindowErrorOut(
                start=e.start_ms, end=e.end_ms, attempts=e.attempts, error=e.error
            )
            for e in result.errors
        ],
    )
