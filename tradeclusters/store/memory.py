"""In-memory TradeStore for tests and throwaway runs."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from tradeclusters.core.enums import Exchange
from tradeclusters.core.trade import Trade
from tradeclusters.store.base import TradeStore, exchange_name


class MemoryTradeStore(TradeStore):
    """Dict-backed store keyed by trade id; contents vanish with the process."""

    def __init__(self) -> None:
        self._trades: dict[str, Trade] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._trades)

    def get(self, trade_id: str) -> Trade | None:
        return self._trades.get(trade_id)

    async def insert_many(self, trades: Iterable[Trade]) -> int:
        written = 0
        async with self._lock:
            for trade in trades:
                if trade.id in self._trades:
                    continue
                self._trades[trade.id] = trade
                written += 1
        return written

    async def query(
        self, symbol: str, exchange: str | Exchange, since_ms: int
    ) -> list[Trade]:
        name = exchange_name(exchange)
        return [
            t for t in self._trades.values()
            if t.symbol == symbol
            and t.exchange.value == name
            and t.timestamp >= since_ms
        ]
