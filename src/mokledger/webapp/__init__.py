"""MokLedger web adapter: SQLModel persistence and the FastAPI JSON surface."""
from __future__ import annotations

from . import persistence
from .application import create_app, status_for
from .persistence import SqlAccountStore, build_engine, create_db_and_tables

__all__ = [
    "SqlAccountStore",
    "build_engine",
    "create_app",
    "create_db_and_tables",
    "persistence",
    "status_for",
]
