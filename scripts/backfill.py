#!/usr/bin/env python3
"""Command-line trade backfill for one symbol across several exchanges.

Runs the same orchestrator as ``POST /api/backfill`` without the HTTP layer,
one exchange after another, writing into ``settings.database_url``.

Features:
- Idempotent: re-running over the same range writes no duplicate rows.
- Fault-tolerant: an exchange that fails is reported and the remaining
  exchanges still run.
- Formatted summary table printed at the end; exit code 1 if any exchange
  failed or reported failed windows.

Usage::

    python scripts/backfill.py --symbol BTCUSDT
    python scripts/backfill.py --exchange binance,okx --symbol ETHUSDT --start 2024-01-01T00:00
    python scripts/backfill.py --exchange all --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from tradeclusters.connectors import CONNECTORS
from tradeclusters.core.config import settings
from tradeclusters.core.utils.logging_config import configure_logging
from tradeclusters.ingestion.backfill import BackfillOrchestrator
from tradeclusters.store import SqlTradeStore

_EXCHANGE_KEYS = [ex.value for ex in CONNECTORS]


@dataclass
class ExchangeOutcome:
    exchange: str
    fetched: int = 0
    written: int = 0
    failed_windows: int = 0
    elapsed: float = 0.0
    status: str = "OK"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _format_number(n: int) -> str:
    return f"{n:,}"


def _format_seconds(s: float) -> str:
    if s < 60:
        return f"{s:.1f}s"
    return f"{int(s // 60)}m{s % 60:.0f}s"


def parse_time(value: str | None) -> int | None:
    """Parse epoch milliseconds or an ISO-8601 timestamp (UTC if naive)."""
    if value is None:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"not an ISO timestamp or epoch milliseconds: {value!r}"
        ) from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def resolve_exchanges(raw: str) -> list[str]:
    """Resolve ``--exchange`` into registry keys.

    Raises:
        SystemExit: If any name is not a registered exchange.
    """
    if raw.strip().lower() == "all":
        return list(_EXCHANGE_KEYS)

    names = [n.strip().lower() for n in raw.split(",") if n.strip()]
    invalid = [n for n in names if n not in _EXCHANGE_KEYS]
    if invalid or not names:
        print(f"Error: unknown exchange(s): {', '.join(invalid) or raw!r}")
        print(f"Available exchanges: {', '.join(_EXCHANGE_KEYS)}")
        sys.exit(1)
    return names


# ---------------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------------
async def _run_exchange(
    orchestrator: BackfillOrchestrator,
    index: int,
    total: int,
    exchange: str,
    symbol: str,
    start_ms: int | None,
    end_ms: int | None,
) -> ExchangeOutcome:
    print(f"\n[{index}/{total}] {exchange} {symbol}...")
    outcome = ExchangeOutcome(exchange=exchange)
    t0 = time.monotonic()
    try:
        result = await orchestrator.backfill(symbol, exchange, start_ms, end_ms)
    except Exception as exc:  # noqa: BLE001
        outcome.elapsed = time.monotonic() - t0
        outcome.status = "FAIL"
        print(f"  FAILED after {_format_seconds(outcome.elapsed)}: {exc}")
        return outcome

    outcome.elapsed = time.monotonic() - t0
    outcome.fetched = result.fetched
    outcome.written = result.written
    outcome.failed_windows = len(result.errors)
    if not result.complete:
        outcome.status = "PARTIAL"
        for err in result.errors:
            print(f"  window {err.start_ms}-{err.end_ms} failed: {err.error}")
    print(
        f"  Done: {_format_number(result.written)} new of "
        f"{_format_number(result.fetched)} fetched, {_format_seconds(outcome.elapsed)}"
    )
    return outcome


def print_summary(outcomes: list[ExchangeOutcome], elapsed: float) -> bool:
    """Print the per-exchange table; return True if everything succeeded."""
    all_ok = all(o.status == "OK" for o in outcomes)
    name_width = max(len(o.exchange) for o in outcomes + [ExchangeOutcome("TOTAL")]) + 2
    num_width = max(
        [len(_format_number(o.fetched)) for o in outcomes] + [len("Fetched")]
    )

    print()
    print("=" * 64)
    print(" SUMMARY")
    print("=" * 64)
    header = (
        f" {'Exchange':<{name_width}} | {'Fetched':>{num_width}} | "
        f"{'Written':>{num_width}} | {'Time':>7} | Status"
    )
    print(header)
    print(" " + "-" * (len(header) - 1))
    for o in outcomes:
        status = o.status if o.status == "OK" else f"\033[91m{o.status}\033[0m"
        print(
            f" {o.exchange:<{name_width}} | "
            f"{_format_number(o.fetched):>{num_width}} | "
            f"{_format_number(o.written):>{num_width}} | "
            f"{_format_seconds(o.elapsed):>7} | {status}"
        )
    print(" " + "-" * (len(header) - 1))
    print(
        f" {'TOTAL':<{name_width}} | "
        f"{_format_number(sum(o.fetched for o in outcomes)):>{num_width}} | "
        f"{_format_number(sum(o.written for o in outcomes)):>{num_width}} | "
        f"{_format_seconds(elapsed):>7} | {'ALL OK' if all_ok else 'SOME FAILED'}"
    )
    print("=" * 64)
    print()
    return all_ok


async def backfill(
    exchanges: list[str],
    symbol: str,
    start_ms: int | None,
    end_ms: int | None,
    dry_run: bool = False,
) -> bool:
    """Backfill ``symbol`` on each exchange in turn.

    Returns:
        True if every exchange completed without failed windows.
    """
    print()
    print("=" * 64)
    print(" TRADE BACKFILL")
    print(f" Symbol: {symbol} | Exchanges: {','.join(exchanges)}")
    print(f" Range: {start_ms or 'end - lookback'} to {end_ms or 'now'}")
    print("=" * 64)

    if dry_run:
        print("\n  *** DRY RUN -- nothing will be fetched or stored ***\n")
        for i, name in enumerate(exchanges, 1):
            cls = next(c for ex, c in CONNECTORS.items() if ex.value == name)
            print(f"  [{i}/{len(exchanges)}] {name} ({cls.__name__}, {cls.CAPABILITY.value})")
        print(f"\n  Would backfill {len(exchanges)} exchange(s).")
        return True

    outcomes: list[ExchangeOutcome] = []
    t0 = time.monotonic()
    async with SqlTradeStore(settings.database_url) as store:
        orchestrator = BackfillOrchestrator.from_settings(store)
        for i, name in enumerate(exchanges, 1):
            outcomes.append(
                await _run_exchange(
                    orchestrator, i, len(exchanges), name, symbol, start_ms, end_ms
                )
            )
    return print_summary(outcomes, time.monotonic() - t0)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Backfill exchange trades into the local trade store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python scripts/backfill.py --symbol BTCUSDT\n"
            "  python scripts/backfill.py --exchange binance,okx --start 2024-01-01T00:00\n"
            "  python scripts/backfill.py --exchange all --dry-run\n"
        ),
    )
    parser.add_argument(
        "--exchange",
        default="binance",
        help=f"Comma-separated exchanges or 'all'. Available: {', '.join(_EXCHANGE_KEYS)}",
    )
    parser.add_argument("--symbol", default="BTCUSDT", help="Instrument code (default: BTCUSDT)")
    parser.add_argument(
        "--start",
        type=parse_time,
        default=None,
        help="Range start, ISO-8601 or epoch ms (default: end minus the lookback)",
    )
    parser.add_argument(
        "--end",
        type=parse_time,
        default=None,
        help="Range end, ISO-8601 or epoch ms (default: now)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Show what would run without fetching anything",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    exchanges = resolve_exchanges(args.exchange)

    if args.start is not None and args.end is not None and args.start >= args.end:
        print(f"Error: start ({args.start}) is not before end ({args.end})")
        sys.exit(1)

    configure_logging(settings.log_level, settings.log_json)
    success = asyncio.run(
        backfill(exchanges, args.symbol, args.start, args.end, dry_run=args.dry_run)
    )
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
