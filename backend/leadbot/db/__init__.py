"""
Database package
"""
from leadbot.db.base import Base
from leadbot.db.session import engine, SessionLocal, get_db
from leadbot.db.models import *

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
]
