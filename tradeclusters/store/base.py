"""TradeStore ABC -- the idempotent persistence contract.

Inserts are insert-or-ignore keyed on ``Trade.id``: writing the same trade
twice, or from two overlapping backfills at once, leaves exactly one row and
never raises. Reads are unordered range scans on (symbol, exchange, time).
"""

from __future__ import annotations

import abc
from collections.abc import Iterable
from typing import Any

from tradeclusters.core.enums import Exchange
from tradeclusters.core.trade import Trade


def exchange_name(exchange: str | Exchange) -> str:
    """Stored form of an exchange identifier (``Exchange.OKX`` -> ``"okx"``)."""
    if isinstance(exchange, Exchange):
        return exchange.value
    return str(exchange).strip().lower()


class TradeStore(abc.ABC):
    """Abstract trade store with an explicit open/close lifecycle.

    Usage::

        async with SqlTradeStore("sqlite+aiosqlite:///trades.sqlite") as store:
            await store.insert(trade)
            recent = await store.query("BTCUSDT", "binance", since_ms)
    """

    async def open(self) -> None:
        """Acquire resources and make sure the schema exists."""

    async def close(self) -> None:
        """Release resources."""

    async def __aenter__(self) -> "TradeStore":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def insert(self, trade: Trade) -> bool:
        """Persist one trade unless its id already exists.

        Returns:
            True if a new row was written, False for an ignored duplicate.
        """
        return await self.insert_many([trade]) == 1

    @abc.abstractmethod
    async def insert_many(self, trades: Iterable[Trade]) -> int:
        """Insert-or-ignore each trade.

        Returns:
            Number of rows actually written (duplicates excluded).
        """
        ...

    @abc.abstractmethod
    async def query(
        self, symbol: str, exchange: str | Exchange, since_ms: int
    ) -> list[Trade]:
        """Return every trade for the pair with ``timestamp >= since_ms``.

        No ordering is promised and there is no upper time bound.
        """
        ...
