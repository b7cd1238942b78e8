"""Backfill ingestion: windowed, retrying fetches persisted to a TradeStore."""

from .backfill import BackfillOrchestrator, BackfillResult, WindowError, iter_windows

__all__ = ["BackfillOrchestrator", "BackfillResult", "WindowError", "iter_windows"]
