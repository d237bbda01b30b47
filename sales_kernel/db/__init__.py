"""Database layer - engine, base classes and column types."""

from sales_kernel.db.base import Base, TrackedBase
from sales_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from sales_kernel.db.types import LongText, Money, Name, Percent, Quantity, ShortCode

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "Money",
    "Quantity",
    "Percent",
    "ShortCode",
    "Name",
    "LongText",
]
