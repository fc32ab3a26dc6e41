"""Rebuild the audio URL from the streamed completion and bound the wait."""
from __future__ import annotations
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable

import httpx

from poe_tts_relay.common.errors import NoDataError, StreamError, StreamTimeoutError
from poe_tts_relay.relay.sse import SSEDecoder

LOGGER = logging.getLogger("poe_tts_relay.relay.reassembly")


def extract_fragment(data: Any) -> str | None:
    """Return ``choices[0].delta.content`` when it is a string."""
    try:
        content = data["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


async def reassemble(
    chunks: AsyncIterator[bytes],
    first_byte_timeout: float | None = None,
) -> str:
    """
    Concatenate every content fragment of the stream, in arrival order.

    Resolves on the ``[DONE]`` sentinel or at end of data, whichever comes
    first. Validity of the result is left to the caller.

    Args:
        chunks: Raw byte chunks of the upstream response body.
        first_byte_timeout: Fail with NoDataError if no chunk arrives in time.
    """
    decoder = SSEDecoder()
    parts: list[str] = []
    iterator = chunks.__aiter__()
    first = True
    try:
        while True:
            try:
                if first and first_byte_timeout is not None:
                    chunk = await asyncio.wait_for(iterator.__anext__(), first_byte_timeout)
                else:
                    chunk = await iterator.__anext__()
            except StopAsyncIteration:
                LOGGER.info("Upstream stream ended without [DONE]")
                decoder.close()
                _consume(decoder, parts)
                break
            except asyncio.TimeoutError:
                raise NoDataError(
                    f"No data received from the upstream API within {first_byte_timeout} seconds"
                ) from None
            first = False
            decoder.feed(chunk)
            if _consume(decoder, parts):
                break
    except (httpx.HTTPError, httpx.StreamError) as e:
        LOGGER.error("Error in upstream response stream: %s", e)
        raise StreamError(f"Upstream stream failed: {e}") from e
    return "".join(parts)


def _consume(decoder: SSEDecoder, parts: list[str]) -> bool:
    """Append fragments from drained events; True once the sentinel is seen."""
    for event in decoder.events():
        if event.done:
            return True
        try:
            data = json.loads(event.payload)
        except json.JSONDecodeError:
            LOGGER.warning("Could not parse JSON from stream record: %s", event.payload)
            continue
        fragment = extract_fragment(data)
        if fragment:
            parts.append(fragment)
    return False


async def with_deadline(operation: Awaitable[str], timeout: float) -> str:
    """
    Race ``operation`` against a wall-clock deadline.

    The loser is cancelled, so the consumer's context managers close the
    upstream connection.
    """
    try:
        return await asyncio.wait_for(operation, timeout)
    except asyncio.TimeoutError:
        LOGGER.error("Upstream stream did not complete within %s seconds", timeout)
        raise StreamTimeoutError(
            f"Timeout: the upstream API did not respond within {timeout:g} seconds"
        ) from None
