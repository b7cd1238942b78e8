"""OKX connector -- most recent public trades only.

``GET /api/v5/market/trades`` returns the latest trades of one instrument
(max 100 for the public endpoint); there is no historical range here, so a
backfill against OKX is best-effort coverage of the most recent activity.

Response envelope::

    {"code": "0", "msg": "", "data": [
        {"instId": "BTC-USDT-SWAP", "tradeId": "242720720", "px": "42219.9",
         "sz": "0.12", "side": "sell", "ts": "1701339640473"}]}

Key design decisions:
- Caller symbols such as ``BTCUSDT`` map to the perpetual swap
  ``BTC-USDT-SWAP``; symbols already in OKX form pass through untouched
- Side markers ``"sell"`` and ``"S"`` (case-sensitive) mean sell
- A non-zero ``code`` in the envelope is treated as a failed fetch
"""

from __future__ import annotations

import re
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

SELL_MARKERS = frozenset({"sell", "S"})

_USDT_SUFFIX = re.compile(r"USDT$", re.IGNORECASE)


def to_inst_id(symbol: str) -> str:
    """Map ``BTCUSDT`` to OKX's perpetual swap id ``BTC-USDT-SWAP``."""
    if "-" in symbol:
        return symbol
    return _USDT_SUFFIX.sub("-USDT-SWAP", symbol)


class OkxConnector(RecentConnector):
    """Connector for OKX recent public trades."""

    EXCHANGE = Exchange.OKX
    BASE_URL: str = "https://www.okx.com"
    PAGE_LIMIT: int = 100
    TRADES_PATH: str = "/api/v5/market/trades"

    async def fetch_recent(
        self, symbol: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        params = {
            "instId": to_inst_id(symbol),
            "limit": min(limit or self.PAGE_LIMIT, self.PAGE_LIMIT),
        }
        body = await self._get_json(self.TRADES_PATH, params)
        if not isinstance(body, dict) or str(body.get("code", "0")) != "0":
            raise FetchError(f"okx: error response: {body!r:.200}")
        data = body.get("data") or []
        if not isinstance(data, list):
            raise FetchError("okx: 'data' is not a list")
        return data

    def normalize(self, payload: dict[str, Any], symbol: str) -> Trade:
        payload = ensure_mapping(payload)
        price = parse_amount(payload.get("px", payload.get("p")), "price")
        quantity = parse_amount(payload.get("sz", payload.get("qty")), "quantity")
        timestamp = parse_timestamp(payload.get("ts"))
        return Trade(
            id=make_trade_id(
                symbol, self.EXCHANGE, payload.get("tradeId"),
                price, quantity, timestamp,
            ),
            exchange=self.EXCHANGE,
            symbol=symbol,
            price=price,
            quantity=quantity,
            side=self._side(payload.get("side") in SELL_MARKERS),
            timestamp=timestamp,
        )
