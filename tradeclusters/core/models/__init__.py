"""SQLAlchemy 2.0 ORM models.

Re-exports Base and the single persisted table, TradeRecord.
"""

from .base import Base
from .trades import TradeRecord

__all__ = [
    "Base",
    "TradeRecord",
]
