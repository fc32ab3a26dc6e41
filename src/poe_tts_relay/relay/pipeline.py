"""The relay pipeline: validate, stream the URL, download, shared by every entry point."""
from __future__ import annotations
import logging
import time

import httpx

from poe_tts_relay.common.config import RelayConfig
from poe_tts_relay.common.errors import InvalidInput
from poe_tts_relay.common.schema import AudioPayload
from poe_tts_relay.relay.fetcher import AudioFetcher, validate_audio_url
from poe_tts_relay.relay.reassembly import reassemble, with_deadline
from poe_tts_relay.relay.upstream import UpstreamClient

LOGGER = logging.getLogger("poe_tts_relay.relay.pipeline")


def text_length(text: str) -> int:
    """Length in UTF-16 code units, the unit the upstream limit is counted in."""
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


def validate_text(text: object, max_length: int) -> str:
    """
    Check the text to synthesize.

    Args:
        text: Value of the request's ``text`` field.
        max_length: Maximum length in UTF-16 code units; 0 disables the limit.
    """
    if text is None or text == "":
        raise InvalidInput("Text is required")
    if not isinstance(text, str):
        raise InvalidInput("Text must be a string")
    length = text_length(text)
    if max_length and length > max_length:
        raise InvalidInput(
            f"Text length ({length} characters) exceeds the maximum limit of "
            f"{max_length} characters. Please split the text into smaller chunks."
        )
    return text


class RelayPipeline:
    def __init__(
        self,
        config: RelayConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.http_timeout_s, transport=self._transport)

    async def fetch_audio_url(self, upstream: UpstreamClient, text: str) -> str:
        async with upstream.open_stream(text) as response:
            return await with_deadline(
                reassemble(response.aiter_bytes(), self.config.first_byte_timeout_s),
                self.config.stream_timeout_s,
            )

    async def generate_audio(self, text: str) -> AudioPayload:
        """
        Run one request end to end.

        Raises:
            RelayError: any stage failed; nothing is retried.
        """
        LOGGER.info("Received text for generation (%d characters)", len(text))
        start = time.time()
        async with self._client() as client:
            LOGGER.info("Step 1: requesting audio URL from %s (model=%s)", self.config.completions_url, self.config.model)
            candidate = await self.fetch_audio_url(UpstreamClient(self.config, client), text)
            url = validate_audio_url(candidate)
            LOGGER.info("Step 1 done. Audio URL: %s", url)

            LOGGER.info("Step 2: downloading audio file")
            audio = await AudioFetcher(client).download(url)
        latency = int((time.time() - start) * 1000)
        LOGGER.info("Step 2 done. Downloaded %d bytes in %sms", audio.length, latency)
        return audio
