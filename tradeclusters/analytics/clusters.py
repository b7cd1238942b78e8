"""Price-bucket volume clusters over a trailing time window.

Each trade is assigned to the nearest multiple of ``bucket_size`` (ties
rounded away from zero), quantities are summed per bucket, and buckets are
ranked by total volume. Every call rescans the window from the store; no
state is kept between calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import structlog

from tradeclusters.connectors.base import now_ms as _now_ms
from tradeclusters.core.enums import Exchange
from tradeclusters.core.exceptions import InvalidRequestError
from tradeclusters.store.base import TradeStore

logger = structlog.get_logger(__name__)

DEFAULT_PERIOD_MS = 86_400_000
DEFAULT_BUCKET_SIZE = 1.0
DEFAULT_LIMIT = 100


@dataclass(frozen=True)
class PriceBucket:
    """Aggregated volume for one price level."""

    bucket_price: float
    volume: float
    last_trade_time: int


def round_half_away(value: float) -> float:
    """Round to the nearest integer, halves away from zero.

    >>> round_half_away(2.5), round_half_away(-2.5), round_half_away(100.4)
    (3.0, -3.0, 100.0)
    """
    return math.copysign(math.floor(abs(value) + 0.5), value)


def bucket_price_for(price: float, bucket_size: float) -> float:
    return round_half_away(price / bucket_size) * bucket_size


class ClusterAggregator:
    """Rank price buckets by traded volume for one symbol and exchange."""

    def __init__(self, store: TradeStore) -> None:
        self.store = store

    async def top_clusters(
        self,
        symbol: str,
        exchange: str | Exchange,
        period_ms: int = DEFAULT_PERIOD_MS,
        bucket_size: float = DEFAULT_BUCKET_SIZE,
        limit: int = DEFAULT_LIMIT,
        now_ms: int | None = None,
    ) -> list[PriceBucket]:
        """Return the ``limit`` heaviest buckets of the last ``period_ms``.

        Args:
            symbol: Instrument code as stored, e.g. ``"BTCUSDT"``.
            exchange: Exchange identifier.
            period_ms: Look-back window ending at ``now_ms``.
            bucket_size: Width of a price bucket.
            limit: Maximum number of buckets returned.
            now_ms: Clock override for tests.

        Returns:
            Buckets sorted by volume descending, ties by ascending price.

        Raises:
            InvalidRequestError: On a non-positive period, bucket or limit.
        """
        if period_ms <= 0:
            raise InvalidRequestError("period_ms must be positive")
        if not math.isfinite(bucket_size) or bucket_size <= 0:
            raise InvalidRequestError("bucket_size must be a positive number")
        if limit <= 0:
            raise InvalidRequestError("limit must be positive")

        since = (now_ms if now_ms is not None else _now_ms()) - period_ms
        trades = await self.store.query(symbol, exchange, since)

        # Keyed by the formatted price so float noise cannot split a bucket
        buckets: dict[str, list[float]] = {}
        for trade in trades:
            price = bucket_price_for(trade.price, bucket_size)
            acc = buckets.setdefault(f"{price:.8f}", [price, 0.0, trade.timestamp])
            acc[1] += trade.quantity
            acc[2] = max(acc[2], trade.timestamp)

        ranked = sorted(
            (
                PriceBucket(bucket_price=p, volume=v, last_trade_time=int(ts))
                for p, v, ts in buckets.values()
            ),
            key=lambda b: (-b.volume, b.bucket_price),
        )
        logger.debug(
            "clusters_computed",
            symbol=symbol,
            trades=len(trades),
            buckets=len(ranked),
        )
        return ranked[:limit]
