"""
Logging configuration with field masking for sensitive data
"""
import logging
import re

from leadbot.core.config import settings


# Patterns to mask in logs
MASK_PATTERNS = [
    (r'"email":\s*"[^"]*"', '"email": "***@***"'),
    (r"'email':\s*'[^']*'", "'email': '***@***'"),
    (r'"(phone|mobile)":\s*"[^"]*"', r'"\1": "***"'),
    (r"'(phone|mobile)':\s*'[^']*'", r"'\1': '***'"),
    # Base64 document bodies are large and carry identity documents
    (r'"(file|file_b64)":\s*"[^"]*"', r'"\1": "<base64 omitted>"'),
    (r"'(file|file_b64)':\s*'[^']*'", r"'\1': '<base64 omitted>'"),
]


class MaskingFormatter(logging.Formatter):
    """Custom formatter that masks sensitive fields."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("leadbot")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
        console_handler.setFormatter(
            MaskingFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()
