"""Trade -- the common, exchange-agnostic executed-trade record.

Connectors normalize their raw payloads into this shape; the store persists
it verbatim and the cluster aggregator reads it back.
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import Exchange, Side


@dataclass(frozen=True)
class Trade:
    """One executed trade.

    Attributes:
        id: Dedup key, unique per (exchange, symbol, native trade id).
        exchange: Source exchange.
        symbol: Instrument code as requested by the caller (e.g. ``BTCUSDT``).
        price: Execution price, finite and non-negative.
        quantity: Traded size, finite and non-negative.
        side: Taker side.
        timestamp: Execution time in milliseconds since the epoch.
    """

    id: str
    exchange: Exchange
    symbol: str
    price: float
    quantity: float
    side: Side
    timestamp: int
