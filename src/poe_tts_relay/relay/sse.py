"""Incremental decoder for the upstream server-sent-event stream.

The decoder knows nothing about HTTP: feed it chunks as they arrive and
iterate :meth:`SSEDecoder.events` to drain parsed records.

Framing: records are separated by a blank line (``\\n\\n``). Inside a record
every line starting with ``data: `` carries one payload; anything else
(comments, keep-alives, other fields) is dropped. The payload ``[DONE]``
ends the stream.
"""
from __future__ import annotations
import codecs
import enum
from collections import deque
from dataclasses import dataclass
from typing import Iterator

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
RECORD_SEPARATOR = "\n\n"


class DecoderState(enum.Enum):
    ACCUMULATING = "accumulating"
    RECORD_READY = "record-ready"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    payload: str = ""
    done: bool = False


DONE_EVENT = StreamEvent(done=True)


class SSEDecoder:
    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._records: deque[str] = deque()
        self.state = DecoderState.ACCUMULATING

    @property
    def done(self) -> bool:
        return self.state is DecoderState.DONE

    def feed(self, chunk: bytes | str) -> None:
        """Append a transport chunk and queue any records it completes."""
        if self.done:
            return
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._split(self._buffer + text)

    def close(self) -> None:
        """Signal end of data: whatever is buffered becomes the last record."""
        if self.done:
            return
        self._split(self._buffer + self._utf8.decode(b"", final=True))
        if self._buffer.strip():
            self._records.append(self._buffer)
            self.state = DecoderState.RECORD_READY
        self._buffer = ""

    def events(self) -> Iterator[StreamEvent]:
        """Drain queued records. Stops for good after the sentinel."""
        while self._records and not self.done:
            record = self._records.popleft()
            for event in _parse_record(record):
                if event.done:
                    self.state = DecoderState.DONE
                    self._records.clear()
                    self._buffer = ""
                    yield event
                    return
                yield event
        if not self.done:
            self.state = DecoderState.ACCUMULATING

    def decode(self, chunk: bytes | str) -> list[StreamEvent]:
        self.feed(chunk)
        return list(self.events())

    def _split(self, text: str) -> None:
        # a lone trailing "\r" is kept until the next chunk shows what follows
        text = text.replace("\r\n", "\n")
        *complete, self._buffer = text.split(RECORD_SEPARATOR)
        if complete:
            self._records.extend(complete)
            self.state = DecoderState.RECORD_READY


def _parse_record(record: str) -> Iterator[StreamEvent]:
    for line in record.strip().split("\n"):
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX):]
        if payload.strip() == DONE_SENTINEL:
            yield DONE_EVENT
            return
        yield StreamEvent(payload=payload)
