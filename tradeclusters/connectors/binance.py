"""Binance USD-M futures connector -- aggregated trades by time range.

Uses ``GET /fapi/v1/aggTrades`` which accepts ``startTime``/``endTime``
(both inclusive, at most one hour apart) and returns up to 1000 records:

    {"a": 26129, "p": "0.01633102", "q": "4.70443515", "f": 27781,
     "l": 27781, "T": 1498793709153, "m": true}

Key design decisions:
- ``a`` (aggregate trade id) is the native id
- ``m`` is "buyer is maker": True means the taker sold
- ``T`` is the trade time in epoch milliseconds
- Follow-up pages use ``fromId`` (last ``a`` + 1) so trades sharing one
  millisecond are never cut off at a page boundary
"""

from __future__ import annotations

from typing import Any

from tradeclusters.connectors.base import (
    FetchError,
    RangeConnector,
    ensure_mapping,
    make_trade_id,
    parse_amount,
    parse_timestamp,
)
from tradeclusters.core.enums import Exchange
from tradeclusters.core.trade import Trade


class BinanceConnector(RangeConnector):
    """Connector for Binance futures aggregated trades.

    Usage::

        async with BinanceConnector() as conn:
            raw = await conn.fetch_range("BTCUSDT", start_ms, end_ms)
    """

    EXCHANGE = Exchange.BINANCE
    BASE_URL: str = "https://fapi.binance.com"
    MAX_ATTEMPTS: int = 3
    PAGE_LIMIT: int = 1000
    AGG_TRADES_PATH: str = "/fapi/v1/aggTrades"

    async def fetch_range(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        limit: int | None = None,
        cursor: Any = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "symbol": symbol,
            "limit": min(limit or self.PAGE_LIMIT, self.PAGE_LIMIT),
        }
        # fromId cannot be combined with a time range
        if cursor is not None:
            params["fromId"] = cursor
        else:
            params["startTime"] = start_ms
            params["endTime"] = end_ms
        data = await self._get_json(self.AGG_TRADES_PATH, params)
        if not isinstance(data, list):
            # Binance reports request errors as {"code": -1121, "msg": "..."}
            raise FetchError(f"binance: unexpected aggTrades body: {data!r:.200}")
        return data

    def next_cursor(self, payloads: list[dict[str, Any]]) -> int | None:
        ids = [
            p["a"]
            for p in payloads
            if isinstance(p, dict)
            and isinstance(p.get("a"), int)
            and not isinstance(p.get("a"), bool)
        ]
        return max(ids) + 1 if ids else None

    def normalize(self, payload: dict[str, Any], symbol: str) -> Trade:
        payload = ensure_mapping(payload)
        price = parse_amount(payload.get("p"), "price")
        quantity = parse_amount(payload.get("q"), "quantity")
        timestamp = parse_timestamp(payload.get("T"))
        native_id = payload.get("a")
        if native_id is None:
            native_id = payload.get("aggregateId", payload.get("tradeId"))
        return Trade(
            id=make_trade_id(symbol, self.EXCHANGE, native_id, price, quantity, timestamp),
            exchange=self.EXCHANGE,
            symbol=symbol,
            price=price,
            quantity=quantity,
            side=self._side(payload.get("m") is True),
            timestamp=timestamp,
        )
