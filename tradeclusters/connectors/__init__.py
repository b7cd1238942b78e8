"""Exchange connectors package.

Re-exports the BaseConnector hierarchy, the exception types, all concrete
connector classes, and the exchange -> connector registry.

Range-capable connectors (explicit start/end):
    BinanceConnector

Recent-only connectors (latest N trades):
    OkxConnector, BybitConnector
"""

from tradeclusters.core.enums import Exchange
from tradeclusters.core.exceptions import InvalidRequestError, UnknownExchangeError

from .base import (
    BaseConnector,
    ConnectorError,
    DataParsingError,
    FetchError,
    RangeConnector,
    RateLimitError,
    RecentConnector,
)
from .binance import BinanceConnector
from .bybit import BybitConnector
from .okx import OkxConnector

# Adding an exchange means one connector class plus one entry here
CONNECTORS: dict[Exchange, type[BaseConnector]] = {
    Exchange.BINANCE: BinanceConnector,
    Exchange.OKX: OkxConnector,
    Exchange.BYBIT: BybitConnector,
}


def get_connector_class(
    exchange: str | Exchange,
    registry: dict[Exchange, type[BaseConnector]] | None = None,
) -> type[BaseConnector]:
    """Look up the connector class for an exchange name.

    Args:
        exchange: Exchange identifier, e.g. ``"binance"`` (case-insensitive).
        registry: Mapping to search; defaults to ``CONNECTORS``.

    Raises:
        InvalidRequestError: If ``exchange`` is blank.
        UnknownExchangeError: If no connector is registered for it.
    """
    registry = CONNECTORS if registry is None else registry
    if isinstance(exchange, Exchange):
        key = exchange
    else:
        name = (exchange or "").strip().lower()
        if not name:
            raise InvalidRequestError("exchange is required")
        try:
            key = Exchange(name)
        except ValueError:
            raise UnknownExchangeError(
                f"Unknown exchange '{exchange}'. "
                f"Supported: {sorted(e.value for e in registry)}"
            ) from None
    if key not in registry:
        raise UnknownExchangeError(
            f"Unknown exchange '{key.value}'. "
            f"Supported: {sorted(e.value for e in registry)}"
        )
    return registry[key]


__all__ = [
    # Base
    "BaseConnector",
    "RangeConnector",
    "RecentConnector",
    "ConnectorError",
    "DataParsingError",
    "FetchError",
    "RateLimitError",
    # Range-capable connectors
    "BinanceConnector",
    # Recent-only connectors
    "OkxConnector",
    "BybitConnector",
    # Registry
    "CONNECTORS",
    "get_connector_class",
]
