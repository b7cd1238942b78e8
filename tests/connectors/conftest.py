"""Connector-specific pytest fixtures.

Sample raw trade payloads in each exchange's native shape.
"""

from __future__ import annotations

from typing import Any

import pytest


@pytest.fixture
def binance_agg_trades() -> list[dict[str, Any]]:
    """Two aggregated trades from /fapi/v1/aggTrades (one taker sell)."""
    return [
        {"a": 26129, "p": "43000.10", "q": "0.500", "f": 27781, "l": 27781,
         "T": 1_700_000_000_100, "m": True},
        {"a": 26130, "p": "43000.60", "q": "1.250", "f": 27782, "l": 27783,
         "T": 1_700_000_000_200, "m": False},
    ]


@pytest.fixture
def okx_trades_body() -> dict[str, Any]:
    """OKX /api/v5/market/trades envelope."""
    return {
        "code": "0",
        "msg": "",
        "data": [
            {"instId": "BTC-USDT-SWAP", "tradeId": "242720720", "px": "43010.5",
             "sz": "3", "side": "sell", "ts": "1700000000300"},
            {"instId": "BTC-USDT-SWAP", "tradeId": "242720721", "px": "43011",
             "sz": "1", "side": "buy", "ts": "1700000000400"},
        ],
    }


@pytest.fixture
def bybit_trades_body() -> dict[str, Any]:
    """Bybit /v5/market/recent-trade envelope."""
    return {
        "retCode": 0,
        "retMsg": "OK",
        "result": {
            "category": "linear",
            "list": [
                {"execId": "2100000000007764263", "symbol": "BTCUSDT",
                 "price": "43020.5", "size": "0.012", "side": "Sell",
                 "time": "1700000000500", "isBlockTrade": False},
                {"execId": "2100000000007764264", "symbol": "BTCUSDT",
                 "price": "43021.0", "size": "0.200", "side": "Buy",
                 "time": "1700000000600", "isBlockTrade": False},
            ],
        },
    }
