"""Database layer: engine, declarative bases and compare-and-swap updates."""

from custody_kernel.db.base import Base, TrackedBase, UUIDString
from custody_kernel.db.conditional import conditional_update, expire_loaded
from custody_kernel.db.engine import create_tables, get_engine, get_session, session_scope

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "conditional_update",
    "create_tables",
    "expire_loaded",
    "get_engine",
    "get_session",
    "session_scope",
]
