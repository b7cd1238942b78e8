"""SQLAlchemy-backed TradeStore.

Writes use the dialect's ``INSERT ... ON CONFLICT (id) DO NOTHING`` so that
duplicate ids are skipped inside the database, which keeps concurrent
overlapping backfills safe without application-level locking. The schema
(``trades`` table plus its ``(symbol, ts)`` index) is created on ``open()``
if missing.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tradeclusters.core.database import create_engine, create_session_factory
from tradeclusters.core.enums import Exchange, Side
from tradeclusters.core.exceptions import StoreError
from tradeclusters.core.models import Base, TradeRecord
from tradeclusters.core.trade import Trade
from tradeclusters.store.base import TradeStore, exchange_name

logger = structlog.get_logger()

# 7 bound parameters per row; stays under SQLITE_MAX_VARIABLE_NUMBER=999
INSERT_CHUNK_SIZE = 100

_DIALECT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def _to_row(trade: Trade) -> dict[str, Any]:
    return {
        "id": trade.id,
        "exchange": trade.exchange.value,
        "symbol": trade.symbol,
        "price": trade.price,
        "qty": trade.quantity,
        "side": trade.side.value,
        "ts": trade.timestamp,
    }


def _to_trade(row: TradeRecord) -> Trade:
    return Trade(
        id=row.id,
        exchange=Exchange(row.exchange),
        symbol=row.symbol,
        price=row.price,
        quantity=row.qty,
        side=Side(row.side),
        timestamp=row.ts,
    )


class SqlTradeStore(TradeStore):
    """Trade store on an async SQLAlchemy engine.

    Args:
        url: Async database URL; defaults to ``settings.database_url``.
        engine: Pre-built engine (takes precedence over ``url``). The store
            disposes only engines it created itself.
    """

    def __init__(
        self,
        url: str | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._url = url
        self._engine = engine
        self._owns_engine = engine is None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreError("Trade store is not open. Call open() first.")
        return self._engine

    async def open(self) -> None:
        if self._engine is None:
            self._engine = create_engine(self._url)
        self._session_factory = create_session_factory(self._engine)
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to initialize trade store: {exc}") from exc
        logger.info("trade_store_opened", dialect=self._engine.dialect.name)

    async def close(self) -> None:
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
        self._session_factory = None
        logger.info("trade_store_closed")

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise StoreError("Trade store is not open. Call open() first.")
        return self._session_factory

    async def insert_many(self, trades: Iterable[Trade]) -> int:
        rows = [_to_row(t) for t in trades]
        if not rows:
            return 0

        dialect = self.engine.dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise StoreError(f"Unsupported database dialect for upserts: {dialect}")

        written = 0
        try:
            async with self._sessions()() as session:
                async with session.begin():
                    for i in range(0, len(rows), INSERT_CHUNK_SIZE):
                        chunk = rows[i : i + INSERT_CHUNK_SIZE]
                        stmt = insert(TradeRecord).values(chunk)
                        stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
                        result = await session.execute(stmt)
                        written += max(result.rowcount or 0, 0)
        except SQLAlchemyError as exc:
            raise StoreError(f"Trade insert failed: {exc}") from exc
        return written

    async def query(
        self, symbol: str, exchange: str | Exchange, since_ms: int
    ) -> list[Trade]:
        stmt = select(TradeRecord).where(
            TradeRecord.symbol == symbol,
            TradeRecord.exchange == exchange_name(exchange),
            TradeRecord.ts >= since_ms,
        )
        try:
            async with self._sessions()() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Trade query failed: {exc}") from exc
        return [_to_trade(r) for r in rows]

    async def count(self) -> int:
        """Total number of stored trades."""
        try:
            async with self._sessions()() as session:
                return (
                    await session.execute(select(func.count()).select_from(TradeRecord))
                ).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreError(f"Trade count failed: {exc}") from exc
