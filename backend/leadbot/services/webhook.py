"""
Automation webhook client.

Answers and documents are posted to the workflow-automation webhook, which
runs OCR and writes lead data. Any non-2xx response or transport error is a
SubmissionError carrying a message the user can see.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from leadbot.core import logger, settings
from leadbot.core.errors import SubmissionError


class WebhookClient:
    """Posts JSON payloads to the automation webhook."""

    def __init__(
        self,
        url: Optional[str] = None,
        forward_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.WEBHOOK_URL
        # When set, the webhook's JSON reply is relayed to the lead store
        self.forward_url = forward_url
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "WebhookClient":
        forward_url = None
        if settings.FORWARD_WEBHOOK_RESPONSES:
            forward_url = f"{settings.DOCUMENT_SERVER_URL.rstrip('/')}/leads/update"
        return cls(forward_url=forward_url, transport=transport)

    async def submit(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Post a payload to the webhook.

        Returns:
            The webhook's JSON body when it sent one, otherwise None.

        Raises:
            SubmissionError: on transport failure or a non-2xx status.
        """
        logger.debug(f"Submitting payload to {self.url}: {payload}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                body = await self._check(response, "Webhook")
                if self.forward_url and body is not None:
                    await self._forward(client, body)
        except httpx.HTTPError as exc:
            logger.error(f"Webhook request failed: {exc}")
            raise SubmissionError(f"Network error: {exc}") from exc

        logger.info(f"Webhook accepted payload for {payload.get('id')}")
        return body

    async def _forward(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> None:
        logger.debug(f"Forwarding webhook response to {self.forward_url}")
        response = await client.post(self.forward_url, json=body)
        await self._check(response, "Lead store (update)")

    @staticmethod
    async def _check(response: httpx.Response, service: str) -> Optional[Dict[str, Any]]:
        if not response.is_success:
            text = response.text
            logger.warning(f"{service} returned status {response.status_code}: {text}")
            raise SubmissionError(
                f"{service} returned status {response.status_code}: {text}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
