"""Incremental Server-Sent Events decoder for streaming chat responses.

Bytes may arrive split at any boundary, including inside a multi-byte
UTF-8 character. The decoder buffers partial lines and yields each
``data:`` JSON payload exactly once, in order, until ``[DONE]``.
"""

import codecs
import json
import logging
from typing import Any, AsyncIterator, Dict, List

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        """Consume a chunk of bytes and return every complete event in it."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        events: List[Dict[str, Any]] = []
        while not self.done:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            self._handle_line(line, events)
        return events

    def flush(self) -> List[Dict[str, Any]]:
        """Process a trailing line that was never newline-terminated."""
        events: List[Dict[str, Any]] = []
        if self.done:
            return events
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        self._handle_line(line, events)
        return events

    def _handle_line(self, line: str, events: List[Dict[str, Any]]) -> None:
        line = line.rstrip("\r")
        if not line or line.startswith(":"):
            return
        if not line.startswith("data:"):
            # event:, id:, retry: carry nothing the providers need
            return
        payload = line[5:]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload.strip() == DONE_SENTINEL:
            self.done = True
            return
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed SSE payload: %.200s", payload)
            return
        if isinstance(event, dict):
            events.append(event)
        else:
            logger.debug("Skipping non-object SSE payload: %.200s", payload)


async def iter_sse_events(chunks: AsyncIterator[bytes]) -> AsyncIterator[Dict[str, Any]]:
    """Decode an async byte stream (e.g. ``response.aiter_bytes()``) into events."""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
        if decoder.done:
            return
    for event in decoder.flush():
        yield event
