"""
Document store client - uploads document images and checks quote status.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from leadbot.core import logger, settings
from leadbot.core.errors import PollingError, SubmissionError


@dataclass(frozen=True)
class StoredFile:
    """Result of a successful upload."""
    path: str
    checksum: str


@dataclass(frozen=True)
class QuoteStatus:
    status: str
    path: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status == "ready" and bool(self.path)


class DocumentStoreClient:
    """HTTP client for the document server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.DOCUMENT_SERVER_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def quote_url(self, path: str) -> str:
        return f"{self.base_url}/artifacts/{path.lstrip('/')}"

    async def upload(self, payload: Dict[str, Any]) -> StoredFile:
        """
        Store one document.

        Args:
            payload: {id, doc_type, file_b64, file_ext, mime}

        Raises:
            SubmissionError: on transport failure, non-2xx, or `ok: false`.
        """
        url = f"{self.base_url}/documents/upload"
        logger.debug(f"Submitting {payload.get('doc_type')} for {payload.get('id')} to {url}")

        try:
            async with self._client() as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error(f"Document upload failed: {exc}")
            raise SubmissionError(f"Network error: {exc}") from exc

        if not response.is_success:
            raise SubmissionError(
                f"Document server error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise SubmissionError("Document server returned an invalid response") from exc

        if not isinstance(body, dict) or not body.get("ok"):
            raise SubmissionError(f"Document server responded with failure: {body}")

        logger.debug(f"Document server response: {body}")
        return StoredFile(path=body.get("path", ""), checksum=body.get("checksum", ""))

    async def quote_status(self, tracking_id: str) -> QuoteStatus:
        """
        Ask whether the quote for a lead has been produced.

        Raises:
            PollingError: on transport failure, non-2xx, or an unreadable body.
        """
        url = f"{self.base_url}/quotes/status/{tracking_id}"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise PollingError(f"Quote status request failed: {exc}") from exc

        if not response.is_success:
            raise PollingError(f"Quote status returned {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise PollingError("Quote status returned an invalid response") from exc
        if not isinstance(body, dict):
            raise PollingError("Quote status returned an invalid response")

        return QuoteStatus(status=str(body.get("status", "unknown")), path=body.get("path"))
