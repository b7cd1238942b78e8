"""Top volume clusters endpoint."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tradeclusters.analytics.clusters import ClusterAggregator
from tradeclusters.api.deps import get_aggregator
from tradeclusters.core.exceptions import InvalidRequestError

router = APIRouter(tags=["Clusters"])


class ClusterOut(BaseModel):
    price: float
    volume: float
    lastTs: int


class TopClustersResponse(BaseModel):
    symbol: str
    exchange: str
    clusters: list[ClusterOut]


@router.get("/top-clusters", response_model=TopClustersResponse)
async def top_clusters(
    symbol: str = Query("BTCUSDT", min_length=1),
    exchange: str = Query("binance", min_length=1),
    limit: int = Query(50, gt=0),
    period_ms: int = Query(86_400_000, alias="periodMs", gt=0),
    bucket: float = Query(1.0, gt=0),
    aggregator: ClusterAggregator = Depends(get_aggregator),
):
    """Heaviest price buckets for the pair over the trailing ``periodMs``."""
    try:
        buckets = await aggregator.top_clusters(
            symbol,
            exchange,
            period_ms=period_ms,
            bucket_size=bucket,
            limit=limit,
        )
    except InvalidRequestError as exc:
        # e.g. bucket=inf passes the numeric check above
        return JSONResponse(status_code=400, content={"error": str(exc)})

    return TopClustersResponse(
        symbol=symbol,
        exchange=exchange,
        clusters=[
            ClusterOut(price=b.bucket_price, volume=b.volume, lastTs=b.last_trade_time)
            for b in buckets
        ],
    )
