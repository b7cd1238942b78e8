"""Backfill orchestrator -- drives one connector across a requested time range.

For range-capable exchanges the range ``[start, end)`` is cut into fixed
windows (one hour by default) processed strictly one after another:

    fetch (with retry) -> normalize -> insert-or-ignore -> politeness sleep

Sequential windows keep at most one request in flight per backfill, however
wide the range. A window whose retries are exhausted is recorded in
``BackfillResult.errors`` and skipped; the remaining windows still run.

Recent-only exchanges get a single retrying fetch of the latest trades; the
requested range is advisory and a failure of that one fetch propagates.

Store failures always propagate and abort the backfill.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tradeclusters.connectors import CONNECTORS, get_connector_class
from tradeclusters.connectors.base import (
    BaseConnector,
    DataParsingError,
    FetchError,
    RangeConnector,
    RecentConnector,
    now_ms as _now_ms,
)
from tradeclusters.core.config import Settings, settings as default_settings
from tradeclusters.core.enums import Exchange
from tradeclusters.core.exceptions import InvalidRequestError
from tradeclusters.core.trade import Trade
from tradeclusters.store.base import TradeStore

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------
@dataclass
class WindowError:
    """A window (or the single recent fetch) that failed after all retries.

    Attributes:
        start_ms: Window start, inclusive.
        end_ms: Window end, inclusive.
        attempts: Number of fetch attempts made.
        error: Description of the last failure.
    """

    start_ms: int
    end_ms: int
    attempts: int
    error: str


@dataclass
class BackfillResult:
    """Outcome of one backfill call.

    ``written`` counts rows actually inserted; duplicates of trades already in
    the store are fetched but not written.
    """

    symbol: str
    exchange: Exchange
    start_ms: int
    end_ms: int
    fetched: int = 0
    written: int = 0
    skipped: int = 0
    windows: int = 0
    errors: list[WindowError] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when no window failed."""
        return not self.errors

    @property
    def message(self) -> str:
        status = "complete" if self.complete else (
            f"partial, {len(self.errors)} of {self.windows} windows failed"
        )
        return (
            f"backfill done ({status}): {self.written} new trades "
            f"from {self.fetched} fetched"
        )


def iter_windows(start_ms: int, end_ms: int, window_ms: int) -> Iterator[tuple[int, int]]:
    """Split ``[start_ms, end_ms)`` into inclusive ``(start, end)`` windows.

    >>> list(iter_windows(0, 25, 10))
    [(0, 9), (10, 19), (20, 24)]
    """
    if window_ms <= 0:
        raise ValueError("window_ms must be positive")
    s = start_ms
    while s < end_ms:
        yield s, min(s + window_ms, end_ms) - 1
        s += window_ms


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class BackfillOrchestrator:
    """Run connector fetches over a time range and persist the trades.

    Args:
        store: Destination store (shared, idempotent).
        connectors: Exchange -> connector class registry.
        window_ms: Width of each range window.
        politeness_delay_ms: Pause between consecutive requests.
        backoff_min_ms: First retry delay; later delays double.
        backoff_max_ms: Upper bound on a single retry delay.
        max_pages_per_window: Follow-up pages fetched when a window
            returns a full page.
        http_timeout_seconds: Per-request timeout handed to connectors.
        default_lookback_ms: Range used when no start is given.
        base_urls: Optional per-exchange base URL overrides.
        sleep: Awaitable sleep used for politeness and backoff delays.

    Usage::

        orchestrator = BackfillOrchestrator.from_settings(store)
        result = await orchestrator.backfill("BTCUSDT", "binance")
    """

    def __init__(
        self,
        store: TradeStore,
        connectors: dict[Exchange, type[BaseConnector]] | None = None,
        *,
        window_ms: int = 3_600_000,
        politeness_delay_ms: int = 300,
        backoff_min_ms: int = 500,
        backoff_max_ms: int = 5_000,
        max_pages_per_window: int = 10,
        http_timeout_seconds: float = 20.0,
        default_lookback_ms: int = 86_400_000,
        base_urls: dict[Exchange, str] | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.store = store
        self.connectors = dict(CONNECTORS if connectors is None else connectors)
        self.window_ms = window_ms
        self.politeness_delay_ms = politeness_delay_ms
        self.backoff_min_ms = backoff_min_ms
        self.backoff_max_ms = max(backoff_max_ms, backoff_min_ms)
        self.max_pages_per_window = max(1, max_pages_per_window)
        self.http_timeout_seconds = http_timeout_seconds
        self.default_lookback_ms = default_lookback_ms
        self.base_urls = dict(base_urls or {})
        self._sleep: SleepFn = sleep or asyncio.sleep

    @classmethod
    def from_settings(
        cls,
        store: TradeStore,
        config: Settings | None = None,
        **overrides: Any,
    ) -> "BackfillOrchestrator":
        """Build an orchestrator from application settings."""
        cfg = config or default_settings
        kwargs: dict[str, Any] = {
            "window_ms": cfg.backfill_window_ms,
            "politeness_delay_ms": cfg.politeness_delay_ms,
            "backoff_min_ms": cfg.backoff_min_ms,
            "backoff_max_ms": cfg.backoff_max_ms,
            "max_pages_per_window": cfg.max_pages_per_window,
            "http_timeout_seconds": cfg.http_timeout_seconds,
            "default_lookback_ms": cfg.default_lookback_ms,
            "base_urls": {
                ex: url for ex in Exchange if (url := cfg.base_url_for(ex.value))
            },
        }
        kwargs.update(overrides)
        return cls(store, **kwargs)

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    async def backfill(
        self,
        symbol: str,
        exchange: str | Exchange,
        start_ms: int | None = None,
        end_ms: int | None = None,
        now_ms: int | None = None,
    ) -> BackfillResult:
        """Backfill trades for one symbol on one exchange.

        Args:
            symbol: Instrument code, e.g. ``"BTCUSDT"``.
            exchange: Exchange identifier, e.g. ``"binance"``.
            start_ms: Range start (inclusive); defaults to ``end - lookback``.
            end_ms: Range end (exclusive); defaults to now.
            now_ms: Clock override for tests.

        Returns:
            BackfillResult with counters and any per-window failures.

        Raises:
            InvalidRequestError: Missing symbol/exchange or an empty range.
            UnknownExchangeError: No connector for ``exchange``.
            FetchError: The single fetch of a recent-only exchange failed.
            StoreError: The store rejected a write.
        """
        symbol = (symbol or "").strip()
        if not symbol:
            raise InvalidRequestError("symbol is required")
        connector_cls = get_connector_class(exchange, self.connectors)
        key = connector_cls.EXCHANGE

        end = int(end_ms) if end_ms is not None else (now_ms or _now_ms())
        start = int(start_ms) if start_ms is not None else end - self.default_lookback_ms
        if start >= end:
            raise InvalidRequestError(
                f"start ({start}) must be before end ({end})"
            )

        result = BackfillResult(symbol=symbol, exchange=key, start_ms=start, end_ms=end)
        log = logger.bind(symbol=symbol, exchange=key.value)
        log.info("backfill_started", start_ms=start, end_ms=end)

        connector = connector_cls(
            base_url=self.base_urls.get(key),
            timeout_seconds=self.http_timeout_seconds,
        )
        async with connector:
            if isinstance(connector, RangeConnector):
                await self._backfill_range(connector, result, log)
            elif isinstance(connector, RecentConnector):
                await self._backfill_recent(connector, result, log)
            else:
                raise TypeError(
                    f"{connector_cls.__name__} declares no fetch capability"
                )

        log.info(
            "backfill_complete",
            fetched=result.fetched,
            written=result.written,
            skipped=result.skipped,
            windows=result.windows,
            failed_windows=len(result.errors),
        )
        return result

    # ---------------------------------------------------------------------
    # Capability-specific flows
    # ---------------------------------------------------------------------
    async def _backfill_range(
        self,
        connector: RangeConnector,
        result: BackfillResult,
        log: structlog.BoundLogger,
    ) -> None:
        windows = list(iter_windows(result.start_ms, result.end_ms, self.window_ms))
        for index, (w_start, w_end) in enumerate(windows):
            if index > 0:
                await self._politeness_pause()
            result.windows += 1
            try:
                await self._backfill_window(connector, result, w_start, w_end, log)
            except FetchError as exc:
                result.errors.append(
                    WindowError(
                        start_ms=w_start,
                        end_ms=w_end,
                        attempts=connector.MAX_ATTEMPTS,
                        error=str(exc),
                    )
                )
                log.warning(
                    "window_failed",
                    window_start=w_start,
                    window_end=w_end,
                    error=str(exc),
                )

    async def _backfill_window(
        self,
        connector: RangeConnector,
        result: BackfillResult,
        w_start: int,
        w_end: int,
        log: structlog.BoundLogger,
    ) -> None:
        page_start = w_start
        cursor: Any = None
        for page in range(self.max_pages_per_window):
            if page > 0:
                await self._politeness_pause()
            payloads = await self._fetch_with_retry(
                functools.partial(
                    connector.fetch_range,
                    result.symbol,
                    page_start,
                    w_end,
                    connector.PAGE_LIMIT,
                    cursor=cursor,
                ),
                connector.MAX_ATTEMPTS,
                log,
            )
            trades, overran = await self._ingest(
                connector, payloads, result, log, until_ms=w_end
            )
            log.info(
                "window_fetched",
                window_start=page_start,
                window_end=w_end,
                page=page,
                cursor=cursor,
                payloads=len(payloads),
            )

            # A short page, or one reaching past the window, exhausts it
            if len(payloads) < connector.PAGE_LIMIT or overran:
                return
            cursor = connector.next_cursor(payloads)
            if cursor is not None:
                continue

            # Time-only paging: trades sharing the boundary millisecond
            # beyond one full page are not reachable
            if not trades:
                return
            next_start = max(max(t.timestamp for t in trades), page_start + 1)
            if next_start > w_end:
                return
            page_start = next_start

        log.warning(
            "window_page_cap_reached",
            window_start=w_start,
            window_end=w_end,
            max_pages=self.max_pages_per_window,
        )

    async def _backfill_recent(
        self,
        connector: RecentConnector,
        result: BackfillResult,
        log: structlog.BoundLogger,
    ) -> None:
        result.windows += 1
        payloads = await self._fetch_with_retry(
            functools.partial(connector.fetch_recent, result.symbol, connector.PAGE_LIMIT),
            connector.MAX_ATTEMPTS,
            log,
        )
        trades, _ = await self._ingest(connector, payloads, result, log)
        if trades:
            oldest = min(t.timestamp for t in trades)
            if oldest > result.start_ms:
                log.warning(
                    "partial_coverage",
                    requested_start=result.start_ms,
                    oldest_available=oldest,
                )

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    async def _fetch_with_retry(
        self,
        fetch: Callable[[], Awaitable[list[dict[str, Any]]]],
        attempts: int,
        log: structlog.BoundLogger,
    ) -> list[dict[str, Any]]:
        """Call ``fetch`` up to ``attempts`` times, backing off on FetchError.

        Raises:
            FetchError: The last failure once the attempt budget is spent.
        """
        backoff_min = self.backoff_min_ms / 1000
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(FetchError),
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(
                multiplier=backoff_min,
                min=backoff_min,
                max=self.backoff_max_ms / 1000,
            ),
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    log.info("fetch_retry", attempt=number, max_attempts=attempts)
                return await fetch()

        raise FetchError("fetch failed after retries")  # pragma: no cover

    async def _ingest(
        self,
        connector: BaseConnector,
        payloads: list[dict[str, Any]],
        result: BackfillResult,
        log: structlog.BoundLogger,
        until_ms: int | None = None,
    ) -> tuple[list[Trade], bool]:
        """Normalize payloads, drop malformed ones, and write the rest.

        Trades stamped after ``until_ms`` belong to a later window and are
        left out entirely.

        Returns:
            The written-or-duplicate trades, and whether any payload ran
            past ``until_ms``.
        """
        trades: list[Trade] = []
        overran = False
        for payload in payloads:
            try:
                trade = connector.normalize(payload, result.symbol)
            except DataParsingError as exc:
                result.skipped += 1
                result.fetched += 1
                log.warning("payload_skipped", error=str(exc))
                continue
            if until_ms is not None and trade.timestamp > until_ms:
                overran = True
                continue
            result.fetched += 1
            trades.append(trade)

        result.written += await self.store.insert_many(trades)
        return trades, overran

    async def _politeness_pause(self) -> None:
        if self.politeness_delay_ms > 0:
            await self._sleep(self.politeness_delay_ms / 1000)
