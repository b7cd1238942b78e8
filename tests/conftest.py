"""Root pytest configuration and shared fixtures.

Provides common test fixtures used across all test modules:
- make_trade: factory for Trade records with sensible defaults
- memory_store: an empty MemoryTradeStore
- sql_store: an open SqlTradeStore on a throwaway SQLite file
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Callable

import pytest
import pytest_asyncio

from tradeclusters.core.enums import Exchange, Side
from tradeclusters.core.trade import Trade
from tradeclusters.store import MemoryTradeStore, SqlTradeStore

NOW_MS = 1_700_000_000_000


@pytest.fixture
def now_ms() -> int:
    """Fixed clock used by tests that pass ``now_ms`` explicitly."""
    return NOW_MS


@pytest.fixture
def make_trade() -> Callable[..., Trade]:
    """Return a factory building Trade records.

    Usage::

        def test_something(make_trade):
            t = make_trade("1", price=100.2, quantity=2.0)
    """
    def _make(native_id: str = "1", **overrides: Any) -> Trade:
        fields: dict[str, Any] = {
            "exchange": Exchange.BINANCE,
            "symbol": "BTCUSDT",
            "price": 100.0,
            "quantity": 1.0,
            "side": Side.BUY,
            "timestamp": NOW_MS - 1_000,
        }
        fields.update(overrides)
        fields.setdefault(
            "id", f"{fields['symbol']}-{fields['exchange'].value}-{native_id}"
        )
        return Trade(**fields)
    return _make


@pytest.fixture
def memory_store() -> MemoryTradeStore:
    return MemoryTradeStore()


@pytest_asyncio.fixture
async def sql_store(tmp_path) -> AsyncIterator[SqlTradeStore]:
    """Open SqlTradeStore backed by a SQLite file under tmp_path."""
    store = SqlTradeStore(f"sqlite+aiosqlite:///{tmp_path / 'trades.sqlite'}")
    await store.open()
    try:
        yield store
    finally:
        await store.close()
