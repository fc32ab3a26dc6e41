from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

import httpx
import pytest

from poe_tts_relay.common.config import RelayConfig

BASE_URL = "https://poe.test/v1"
AUDIO_URL = "http://example.com/a"
AUDIO_BYTES = b"ID3\x04\x00fake-mp3-frames\xff\xfb\x90\x00" * 8
FRAGMENTS = ["http://", "ex", "ample.com/a"]


def delta(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": content}}]}) + "\n\n"


def sse_body(fragments: list[str], done: bool = True) -> bytes:
    text = "".join(delta(f) for f in fragments)
    if done:
        text += "data: [DONE]\n\n"
    return text.encode("utf-8")


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def aiter_chunks(chunks: list[bytes], stall: float = 0.0) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    if stall:
        await asyncio.sleep(stall)


class FakeUpstream:
    """MockTransport-backed stand-in for both the completion API and the audio host."""

    def __init__(
        self,
        body: bytes | None = None,
        chunk_size: int = 7,
        stall: float = 0.0,
        stall_before_first: float = 0.0,
        completion_status: int = 200,
        completion_error: str = "",
        audio: bytes = AUDIO_BYTES,
        audio_status: int = 200,
    ) -> None:
        self.body = sse_body(FRAGMENTS) if body is None else body
        self.chunk_size = chunk_size
        self.stall = stall
        self.stall_before_first = stall_before_first
        self.completion_status = completion_status
        self.completion_error = completion_error
        self.audio = audio
        self.audio_status = audio_status
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def downloads(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/chat/completions"):
            if self.completion_status != 200:
                return httpx.Response(self.completion_status, text=self.completion_error)
            return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, content=self._stream())
        return httpx.Response(self.audio_status, content=self.audio, headers={"Content-Type": "audio/mpeg"})

    async def _stream(self) -> AsyncIterator[bytes]:
        if self.stall_before_first:
            await asyncio.sleep(self.stall_before_first)
        async for chunk in aiter_chunks(split_every(self.body, self.chunk_size), self.stall):
            yield chunk


@pytest.fixture
def config() -> RelayConfig:
    return RelayConfig(api_key="test-key", base_url=BASE_URL)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()
