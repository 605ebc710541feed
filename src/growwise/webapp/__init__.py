"""GrowWise web surface: SQLModel persistence and a FastAPI JSON adapter."""
from __future__ import annotations

from .application import create_app, default_bank
from .persistence import CoinTransaction, SqlLedgerStore, create_db_and_tables, make_engine

__all__ = [
    "CoinTransaction",
    "SqlLedgerStore",
    "create_app",
    "create_db_and_tables",
    "default_bank",
    "make_engine",
]
