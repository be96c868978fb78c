"""
API routes package
"""
from leadbot.api.routes import chat, documents, leads, quotes

__all__ = [
    "chat",
    "documents",
    "leads",
    "quotes",
]
