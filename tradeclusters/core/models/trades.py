"""Executed-trade table -- one row per normalized exchange trade.

Primary key is the derived trade id (``{symbol}-{exchange}-{native_id}``),
which makes ``INSERT ... ON CONFLICT DO NOTHING`` the dedup mechanism.
Secondary index on (symbol, ts) serves the time-windowed cluster scans.
Column names keep the short on-disk layout (``qty``, ``ts``).
"""

from sqlalchemy import BigInteger, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TradeRecord(Base):
    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    exchange: Mapped[str] = mapped_column(String(20), nullable=False)
    symbol: Mapped[str] = mapped_column(String(40), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    qty: Mapped[float] = mapped_column(Float, nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    ts: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_trades_symbol_ts", "symbol", "ts"),
    )
