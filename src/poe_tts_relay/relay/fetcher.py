"""Download the audio file the upstream stream pointed at."""
from __future__ import annotations
import logging

import httpx

from poe_tts_relay.common.errors import DownloadError, InvalidURLError
from poe_tts_relay.common.schema import AudioPayload

LOGGER = logging.getLogger("poe_tts_relay.relay.fetcher")


def validate_audio_url(candidate: str) -> str:
    """Return the stripped URL, or raise InvalidURLError if it is not http(s)."""
    url = candidate.strip()
    if not url or not url.startswith("http"):
        LOGGER.error("No valid audio URL in upstream response. Received: %r", candidate)
        raise InvalidURLError("API response did not contain a valid audio URL.")
    return url


class AudioFetcher:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def download(self, url: str) -> AudioPayload:
        try:
            response = await self._client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            LOGGER.error("Audio download failed: %s", e)
            raise DownloadError("Failed to download the audio file from the provided URL.") from e
        if not response.is_success:
            LOGGER.error(
                "Audio download failed. Status: %s %s",
                response.status_code,
                response.reason_phrase,
            )
            raise DownloadError("Failed to download the audio file from the provided URL.")
        return AudioPayload(data=response.content)
