"""
Tests for settings validation and log masking.
"""
import logging

import pytest
from pydantic import ValidationError

from leadbot.core.config import Settings
from leadbot.core.logging import MaskingFormatter


def format_message(message: str) -> str:
    record = logging.LogRecord("leadbot", logging.INFO, __file__, 1, message, None, None)
    return MaskingFormatter("%(message)s").format(record)


class TestMaskingFormatter:
    """Test that sensitive fields never reach the logs."""

    def test_masks_document_bodies(self):
        masked = format_message('payload {"id": "TRACK-1", "file_b64": "iVBORw0KGgo="}')
        assert "iVBORw0KGgo" not in masked
        assert '"file_b64": "<base64 omitted>"' in masked
        assert "TRACK-1" in masked

    def test_masks_contact_details(self):
        masked = format_message("{'email': 'alice@example.com', 'mobile': '0501234567'}")
        assert "alice@example.com" not in masked
        assert "0501234567" not in masked

    def test_plain_message_untouched(self):
        assert format_message("Stage change -> collecting_doc_1") == "Stage change -> collecting_doc_1"


class TestSettingsValidation:
    """Test settings that would break the conversation flow."""

    def test_development_defaults(self):
        settings = Settings(APP_ENV="development")
        assert settings.POLL_INTERVAL_SECONDS == 5.0
        assert "image/png" in settings.ALLOWED_FILE_TYPES

    def test_production_requires_real_webhook(self):
        with pytest.raises(ValidationError, match="WEBHOOK_URL"):
            Settings(APP_ENV="production", DOCUMENT_SERVER_URL="https://docs.example.com")

    def test_production_requires_real_document_server(self):
        with pytest.raises(ValidationError, match="DOCUMENT_SERVER_URL"):
            Settings(APP_ENV="production", WEBHOOK_URL="https://automation.example.com/webhook")

    def test_production_with_urls(self):
        settings = Settings(
            APP_ENV="production",
            WEBHOOK_URL="https://automation.example.com/webhook",
            DOCUMENT_SERVER_URL="https://docs.example.com",
        )
        assert settings.APP_ENV == "production"

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError, match="POLL_INTERVAL_SECONDS"):
            Settings(POLL_INTERVAL_SECONDS=0)

    def test_debug_outside_development_warns(self):
        with pytest.warns(UserWarning):
            Settings(
                APP_ENV="staging",
                DEBUG=True,
                WEBHOOK_URL="https://automation.example.com/webhook",
                DOCUMENT_SERVER_URL="https://docs.example.com",
            )
