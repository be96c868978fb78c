"""
Core module exports
"""
from leadbot.core.config import settings, get_settings
from leadbot.core.logging import logger
from leadbot.core.errors import (
    LeadBotError,
    LoadError,
    ValidationError,
    DocumentTypeError,
    SubmissionError,
    PollingError,
    InvalidTransitionError,
    SessionNotFoundError,
)

__all__ = [
    "settings",
    "get_settings",
    "logger",
    "LeadBotError",
    "LoadError",
    "ValidationError",
    "DocumentTypeError",
    "SubmissionError",
    "PollingError",
    "InvalidTransitionError",
    "SessionNotFoundError",
]
