"""Infra layer: SQLite storage and the promotion/job stores."""

from .base import JobStore, PromotionStore
from .sqlite_stores import SQLiteJobStore, SQLitePromotionStore
from .storage import SQLiteManager

__all__ = [
    "JobStore",
    "PromotionStore",
    "SQLiteJobStore",
    "SQLiteManager",
    "SQLitePromotionStore",
]
