"""Client for the streamed chat-completion endpoint."""
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from poe_tts_relay.common.config import RelayConfig
from poe_tts_relay.common.errors import UpstreamError

LOGGER = logging.getLogger("poe_tts_relay.relay.upstream")


class UpstreamClient:
    def __init__(self, config: RelayConfig, client: httpx.AsyncClient) -> None:
        self._config = config
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.api_key.get_secret_value()}",
        }

    def _payload(self, text: str) -> dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": [{"role": "user", "content": text}],
            "stream": True,
        }

    @asynccontextmanager
    async def open_stream(self, text: str) -> AsyncIterator[httpx.Response]:
        """
        POST the completion request and yield the open streaming response.

        Raises:
            UpstreamError: transport failure or non-success status.
        """
        request = self._client.build_request(
            "POST",
            self._config.completions_url,
            headers=self._headers(),
            json=self._payload(text),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            LOGGER.error("Completion request failed: %s", e)
            raise UpstreamError(502, str(e)) from e

        try:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                LOGGER.error(
                    "Error from upstream API: %s %s %s",
                    response.status_code,
                    response.reason_phrase,
                    body,
                )
                raise UpstreamError(response.status_code, body)
            yield response
        finally:
            await response.aclose()
