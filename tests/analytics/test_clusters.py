"""Tests for ClusterAggregator and price bucketing."""

from __future__ import annotations

import math

import pytest

from tradeclusters.analytics.clusters import (
    ClusterAggregator,
    PriceBucket,
    round_half_away,
)
from tradeclusters.core.enums import Exchange
from tradeclusters.core.exceptions import InvalidRequestError

DAY = 86_400_000


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------
class TestRoundHalfAway:
    @pytest.mark.parametrize(
        "value, expected",
        [(100.2, 100.0), (100.5, 101.0), (100.6, 101.0), (2.5, 3.0),
         (-2.5, -3.0), (-2.4, -2.0), (0.0, 0.0)],
    )
    def test_values(self, value, expected):
        assert round_half_away(value) == expected


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
class TestTopClusters:
    @pytest.mark.asyncio
    async def test_buckets_and_sums(self, memory_store, make_trade, now_ms):
        await memory_store.insert_many(
            [
                make_trade("1", price=100.2, quantity=2.0, timestamp=now_ms - 300),
                make_trade("2", price=100.4, quantity=3.0, timestamp=now_ms - 100),
                make_trade("3", price=100.6, quantity=1.0, timestamp=now_ms - 200),
            ]
        )

        buckets = await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", now_ms=now_ms
        )

        assert buckets == [
            PriceBucket(bucket_price=100.0, volume=5.0, last_trade_time=now_ms - 100),
            PriceBucket(bucket_price=101.0, volume=1.0, last_trade_time=now_ms - 200),
        ]

    @pytest.mark.asyncio
    async def test_ranked_by_volume_and_limited(self, memory_store, make_trade, now_ms):
        await memory_store.insert_many(
            [
                make_trade("a", price=10.0, quantity=5.0),
                make_trade("b", price=20.0, quantity=20.0),
                make_trade("c", price=30.0, quantity=1.0),
            ]
        )

        buckets = await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", limit=2, now_ms=now_ms
        )

        assert [(b.bucket_price, b.volume) for b in buckets] == [(20.0, 20.0), (10.0, 5.0)]

    @pytest.mark.asyncio
    async def test_ties_break_by_ascending_price(self, memory_store, make_trade, now_ms):
        await memory_store.insert_many(
            [
                make_trade("hi", price=300.0, quantity=2.0),
                make_trade("lo", price=100.0, quantity=2.0),
                make_trade("mid", price=200.0, quantity=2.0),
            ]
        )

        buckets = await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", now_ms=now_ms
        )

        assert [b.bucket_price for b in buckets] == [100.0, 200.0, 300.0]

    @pytest.mark.asyncio
    async def test_fractional_bucket_size(self, memory_store, make_trade, now_ms):
        await memory_store.insert_many(
            [
                make_trade("1", price=100.24, quantity=1.0),
                make_trade("2", price=100.16, quantity=1.0),
                make_trade("3", price=100.26, quantity=1.0),
            ]
        )

        buckets = await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", bucket_size=0.1, now_ms=now_ms
        )

        assert len(buckets) == 2
        assert buckets[0].bucket_price == pytest.approx(100.2)
        assert buckets[0].volume == pytest.approx(2.0)
        assert buckets[1].bucket_price == pytest.approx(100.3)

    @pytest.mark.asyncio
    async def test_only_trades_inside_period(self, memory_store, make_trade, now_ms):
        await memory_store.insert_many(
            [
                make_trade("old", price=50.0, quantity=100.0, timestamp=now_ms - DAY - 1),
                make_trade("edge", price=60.0, quantity=1.0, timestamp=now_ms - DAY),
            ]
        )

        buckets = await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", now_ms=now_ms
        )

        assert [b.bucket_price for b in buckets] == [60.0]

    @pytest.mark.asyncio
    async def test_other_pairs_ignored(self, memory_store, make_trade, now_ms):
        await memory_store.insert_many(
            [
                make_trade("1", symbol="ETHUSDT"),
                make_trade("2", exchange=Exchange.OKX),
            ]
        )

        assert await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", now_ms=now_ms
        ) == []

    @pytest.mark.asyncio
    async def test_empty_store(self, memory_store, now_ms):
        assert await ClusterAggregator(memory_store).top_clusters(
            "BTCUSDT", "binance", now_ms=now_ms
        ) == []

    @pytest.mark.asyncio
    async def test_reads_from_sql_store(self, sql_store, make_trade, now_ms):
        await sql_store.insert_many(
            [make_trade(str(i), price=100.0 + i, quantity=float(i)) for i in range(1, 4)]
        )

        buckets = await ClusterAggregator(sql_store).top_clusters(
            "BTCUSDT", "binance", limit=1, now_ms=now_ms
        )

        assert buckets == [
            PriceBucket(bucket_price=103.0, volume=3.0, last_trade_time=now_ms - 1_000)
        ]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"period_ms": 0},
            {"period_ms": -5},
            {"bucket_size": 0},
            {"bucket_size": -1.0},
            {"bucket_size": math.inf},
            {"bucket_size": math.nan},
            {"limit": 0},
        ],
    )
    async def test_rejects_non_positive_inputs(self, memory_store, kwargs):
        with pytest.raises(InvalidRequestError):
            await ClusterAggregator(memory_store).top_clusters(
                "BTCUSDT", "binance", **kwargs
            )
