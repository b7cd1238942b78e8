"""Trade store package.

Exports:
- ``TradeStore`` -- abstract insert-or-ignore / range-scan contract
- ``SqlTradeStore`` -- SQLAlchemy async implementation (SQLite by default)
- ``MemoryTradeStore`` -- dict-backed implementation for tests
"""

from .base import TradeStore
from .memory import MemoryTradeStore
from .sql import SqlTradeStore

__all__ = ["TradeStore", "SqlTradeStore", "MemoryTradeStore"]
