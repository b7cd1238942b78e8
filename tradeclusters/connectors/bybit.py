"""Bybit connector -- most recent public trades for linear contracts.

``GET /v5/market/recent-trade?category=linear`` returns up to 1000 of the
latest trades; Bybit has no public historical-range endpoint, so coverage
is best-effort.

v5 envelope::

    {"retCode": 0, "retMsg": "OK", "result": {"category": "linear", "list": [
        {"execId": "2100000000007764263", "symbol": "BTCUSDT",
         "price": "16618.49", "size": "0.00012", "side": "Buy",
         "time": "1672052955758", "isBlockTrade": false}]}}

The retired v2 endpoint returned ``result`` as a bare list with ``id``,
``qty`` and ``trade_time_ms``; both shapes are accepted.
"""

from __future__ import annotations

from typing import Any

from tradeclusters.connectors.base import (
    FetchError,
    RecentConnector,
    ensure_mapping,
    make_trade_id,
    parse_amount,
    parse_timestamp,
)
from tradeclusters.core.enums import Exchange
from tradeclusters.core.trade import Trade


class BybitConnector(RecentConnector):
    """Connector for Bybit recent public trades (linear perpetuals)."""

    EXCHANGE = Exchange.BYBIT
    BASE_URL: str = "https://api.bybit.com"
    PAGE_LIMIT: int = 200
    CATEGORY: str = "linear"
    TRADES_PATH: str = "/v5/market/recent-trade"

    async def fetch_recent(
        self, symbol: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        params = {
            "category": self.CATEGORY,
            "symbol": symbol,
            "limit": min(limit or self.PAGE_LIMIT, 1000),
        }
        body = await self._get_json(self.TRADES_PATH, params)
        if not isinstance(body, dict):
            raise FetchError(f"bybit: unexpected body: {body!r:.200}")

        ret_code = body.get("retCode", body.get("ret_code", 0))
        if str(ret_code) != "0":
            raise FetchError(
                f"bybit: retCode={ret_code} {body.get('retMsg', body.get('ret_msg', ''))}"
            )

        result = body.get("result")
        if isinstance(result, dict):
            result = result.get("list")
        if result is None:
            return []
        if not isinstance(result, list):
            raise FetchError("bybit: 'result' does not contain a trade list")
        return result

    def normalize(self, payload: dict[str, Any], symbol: str) -> Trade:
        payload = ensure_mapping(payload)
        price = parse_amount(payload.get("price"), "price")
        quantity = parse_amount(
            payload.get("size", payload.get("qty")), "quantity"
        )
        timestamp = parse_timestamp(payload.get("time", payload.get("trade_time_ms")))
        native_id = payload.get("execId", payload.get("id"))
        return Trade(
            id=make_trade_id(symbol, self.EXCHANGE, native_id, price, quantity, timestamp),
            exchange=self.EXCHANGE,
            symbol=symbol,
            price=price,
            quantity=quantity,
            side=self._side(payload.get("side") == "Sell"),
            timestamp=timestamp,
        )
