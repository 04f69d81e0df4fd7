"""
Database connection module.
"""

from .connection import Base, SessionLocal, engine, get_db, get_session_factory, init_models

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "get_session_factory",
    "init_models",
]
