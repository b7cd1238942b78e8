"""Exception hierarchy for request validation and persistence.

Connector failures live next to the connectors in
``tradeclusters.connectors.base`` and share the same root class.
"""


class TradeClustersError(Exception):
    """Base exception for all engine errors."""


class InvalidRequestError(TradeClustersError):
    """Raised when required inputs are missing or out of range."""


class UnknownExchangeError(InvalidRequestError):
    """Raised when no connector is registered for the requested exchange."""


class StoreError(TradeClustersError):
    """Raised when the trade store fails to read or write."""
