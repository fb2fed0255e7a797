"""Incremental decoder for `data:` framed server-sent event streams"""

import codecs
import json
import logging
from typing import Any, AsyncIterator

from llmstream.errors import ParseError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


class SSEDecoder:
    """Turns arbitrary-sized byte reads into decoded JSON frames.

    Incomplete trailing lines are buffered until the next read. The
    ``data: [DONE]`` sentinel ends decoding; anything fed afterwards is
    ignored. A malformed frame is recorded in ``errors`` and skipped.
    """

    def __init__(self, source: str = "stream"):
        self.source = source
        self.buffer = ""
        self.finished = False
        self.errors: list[ParseError] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def parse_errors(self) -> int:
        return len(self.errors)

    def feed(self, data: bytes) -> list[dict[str, Any]]:
        """Consume one read and return every frame it completed"""
        if self.finished:
            return []

        self.buffer += self._decoder.decode(data)
        lines = self.buffer.split("\n")
        # Last piece may be a partial line
        self.buffer = lines.pop()
        return self._process(lines)

    def flush(self) -> list[dict[str, Any]]:
        """Process whatever is left once the transport has closed"""
        if self.finished:
            return []

        tail = self.buffer + self._decoder.decode(b"", final=True)
        self.buffer = ""
        return self._process(tail.split("\n"))

    def _process(self, lines: list[str]) -> list[dict[str, Any]]:
        frames = []
        for line in lines:
            trimmed = line.strip()
            if not trimmed:
                continue
            if trimmed == DONE_SENTINEL:
                self.finished = True
                self.buffer = ""
                break
            if not trimmed.startswith(DATA_PREFIX):
                continue

            payload = trimmed[len(DATA_PREFIX):]
            try:
                frame = json.loads(payload)
            except json.JSONDecodeError as e:
                self.record_error(trimmed, str(e))
                continue

            if not isinstance(frame, dict):
                self.record_error(trimmed, f"expected a JSON object, got {type(frame).__name__}")
                continue

            frames.append(frame)
        return frames

    def record_error(self, line: str, reason: str) -> ParseError:
        """Count and log a frame that is skipped"""
        error = ParseError(line, reason)
        self.errors.append(error)
        logger.warning(f"[{self.source}] {error}: {line[:200]}")
        return error


async def iter_frames(
    byte_stream: AsyncIterator[bytes],
    decoder: SSEDecoder | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Drive a decoder over an async byte iterator"""
    decoder = decoder or SSEDecoder()

    async for data in byte_stream:
        for frame in decoder.feed(data):
            yield frame
        if decoder.finished:
            return

    for frame in decoder.flush():
        yield frame
