"""Base connector infrastructure for exchange trade connectors.

Provides the BaseConnector abstract class with:
- Async HTTP client via httpx with a fixed per-call timeout
- Uniform translation of transport/HTTP/JSON failures into FetchError
- Structured logging via structlog
- Shared helpers for trade-id synthesis and numeric field parsing

Connectors never retry on their own: the backfill orchestrator owns the
retry budget (``MAX_ATTEMPTS``) and backoff policy.

Exception hierarchy:
- ConnectorError: base for all connector errors
- FetchError: transport failure, non-2xx status, or unusable response body
- RateLimitError: API rate limit hit (HTTP 429), a FetchError
- DataParsingError: a single trade payload cannot be normalized
"""

from __future__ import annotations

import abc
import hashlib
import math
import time
from typing import Any

import httpx
import structlog

from tradeclusters.core.enums import Exchange, FetchCapability, Side
from tradeclusters.core.exceptions import TradeClustersError
from tradeclusters.core.trade import Trade


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------
class ConnectorError(TradeClustersError):
    """Base exception for all connector errors."""


class FetchError(ConnectorError):
    """Raised when a request fails at the transport, HTTP or body level."""


class RateLimitError(FetchError):
    """Raised when the API returns a 429 rate limit response."""


class DataParsingError(ConnectorError):
    """Raised when a raw trade payload cannot be normalized."""


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------
def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ensure_mapping(payload: Any) -> dict[str, Any]:
    """Return ``payload`` if it is a JSON object.

    Raises:
        DataParsingError: For list elements that are not objects
            (strings, numbers, null).
    """
    if not isinstance(payload, dict):
        raise DataParsingError(
            f"trade payload is not an object: {type(payload).__name__}"
        )
    return payload


def parse_amount(value: Any, field_name: str) -> float:
    """Parse a price/size field into a finite, non-negative float.

    Raises:
        DataParsingError: If the value is missing, non-numeric, NaN,
            infinite, or negative.
    """
    if value is None or isinstance(value, bool):
        raise DataParsingError(f"missing {field_name}")
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise DataParsingError(f"non-numeric {field_name}: {value!r}") from exc
    if not math.isfinite(amount) or amount < 0:
        raise DataParsingError(f"invalid {field_name}: {value!r}")
    return amount


def parse_timestamp(value: Any) -> int:
    """Parse an epoch-millisecond field; missing or bad values mean "now"."""
    try:
        ts = int(value)
    except (TypeError, ValueError):
        return now_ms()
    return ts if ts > 0 else now_ms()


def make_trade_id(
    symbol: str,
    exchange: Exchange,
    native_id: Any,
    price: float,
    quantity: float,
    timestamp: int,
) -> str:
    """Build the dedup key for a trade.

    Uses the exchange's own trade identifier when present. Otherwise the id
    is a SHA-1 over the trade's content, so re-fetching the same trade
    always yields the same key.
    """
    if native_id not in (None, ""):
        return f"{symbol}-{exchange.value}-{native_id}"
    digest = hashlib.sha1(
        f"{exchange.value}|{symbol}|{price!r}|{quantity!r}|{timestamp}".encode()
    ).hexdigest()
    return f"{symbol}-{exchange.value}-h{digest[:20]}"


# ---------------------------------------------------------------------------
# BaseConnector ABC
# ---------------------------------------------------------------------------
class BaseConnector(abc.ABC):
    """Abstract base class for all exchange trade connectors.

    Subclasses MUST override:
        EXCHANGE: Exchange - registry key and id component
        BASE_URL: str - base API URL
        normalize() - raw payload -> Trade

    Subclasses MAY override:
        TIMEOUT_SECONDS: float - HTTP timeout per request (default 20.0)
        MAX_ATTEMPTS: int - attempt budget the orchestrator applies
        PAGE_LIMIT: int - trades requested per call

    Usage::

        async with BinanceConnector() as conn:
            payloads = await conn.fetch_range("BTCUSDT", start_ms, end_ms)
            trades = [conn.normalize(p, "BTCUSDT") for p in payloads]
    """

    # Subclasses MUST override
    EXCHANGE: Exchange
    BASE_URL: str = ""
    CAPABILITY: FetchCapability

    # Subclasses MAY override
    TIMEOUT_SECONDS: float = 20.0
    MAX_ATTEMPTS: int = 3
    PAGE_LIMIT: int = 100

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = base_url or self.BASE_URL
        self.timeout_seconds = timeout_seconds or self.TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None
        self.log = structlog.get_logger().bind(connector=self.EXCHANGE.value)

    async def __aenter__(self) -> "BaseConnector":
        """Create the httpx async client."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            headers={"Accept": "application/json"},
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        """Close the httpx async client if open."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the active httpx client.

        Raises:
            ConnectorError: If the client has not been initialized via __aenter__.
        """
        if self._client is None:
            raise ConnectorError(
                f"{self.EXCHANGE.value}: HTTP client not initialized. "
                "Use 'async with connector:' context manager."
            )
        return self._client

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        """Single GET returning the decoded JSON body.

        Raises:
            RateLimitError: On HTTP 429.
            FetchError: On transport errors, timeouts, other non-2xx
                statuses, or a body that is not valid JSON.
        """
        self.log.debug("http_request", path=path, params=params)
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(
                f"{self.EXCHANGE.value}: request to {path} failed: {exc!r}"
            ) from exc

        if response.status_code == 429:
            raise RateLimitError(
                f"{self.EXCHANGE.value}: rate limit exceeded (HTTP 429)"
            )
        if not response.is_success:
            raise FetchError(
                f"{self.EXCHANGE.value}: HTTP {response.status_code} from {path}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(
                f"{self.EXCHANGE.value}: malformed JSON body from {path}"
            ) from exc

    @staticmethod
    def _side(is_sell: bool) -> Side:
        return Side.SELL if is_sell else Side.BUY

    @abc.abstractmethod
    def normalize(self, payload: dict[str, Any], symbol: str) -> Trade:
        """Convert one raw trade payload into a Trade.

        Args:
            payload: A single trade object as returned by the exchange.
            symbol: The caller's instrument code, stored on the Trade.

        Raises:
            DataParsingError: If price or quantity is unusable.
        """
        ...


class RangeConnector(BaseConnector):
    """Connector whose API accepts an explicit [start, end] time range."""

    CAPABILITY = FetchCapability.RANGE

    @abc.abstractmethod
    async def fetch_range(
        self,
        symbol: str,
        start_ms: int,
        end_ms: int,
        limit: int | None = None,
        cursor: Any = None,
    ) -> list[dict[str, Any]]:
        """Fetch up to ``limit`` raw trades with timestamps in [start_ms, end_ms].

        When ``cursor`` is given (a value from ``next_cursor``) the page
        continues from that position instead of ``start_ms`` and may run
        past ``end_ms``.
        """
        ...

    def next_cursor(self, payloads: list[dict[str, Any]]) -> Any:
        """Native continuation token for the page after ``payloads``.

        ``None`` means the API only pages by time.
        """
        return None


class RecentConnector(BaseConnector):
    """Connector whose API only exposes the most recent trades."""

    CAPABILITY = FetchCapability.RECENT
    MAX_ATTEMPTS = 2

    @abc.abstractmethod
    async def fetch_recent(
        self, symbol: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """Fetch the latest ``limit`` raw trades."""
        ...
