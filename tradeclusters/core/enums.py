"""Shared enumerations used across connectors, storage and the API.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with database storage and JSON output.
"""

from enum import Enum


class Exchange(str, Enum):
    """Exchanges with a registered trade connector."""

    BINANCE = "binance"
    OKX = "okx"
    BYBIT = "bybit"


class Side(str, Enum):
    """Taker side of an executed trade."""

    BUY = "buy"
    SELL = "sell"


class FetchCapability(str, Enum):
    """How far back a connector can reach.

    RANGE connectors accept explicit start/end timestamps; RECENT connectors
    only expose the latest N trades.
    """

    RANGE = "range"
    RECENT = "recent"
