"""Incremental server-sent-event frame parser.

Bytes or text arrive in arbitrary chunks; complete frames come out as soon as
their terminating blank line has been seen.
"""
from __future__ import annotations

import codecs
import json
import logging
from typing import AsyncIterable, Iterator, List, Optional, Union

from .models import SSEFrame


Chunk = Union[bytes, bytearray, str]


class SSEParser:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._event: Optional[str] = None
        self._data: Optional[str] = None
        self.skipped = 0

    def feed(self, chunk: Chunk) -> List[SSEFrame]:
        """Consume one chunk and return the frames it completed."""
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._decoder.decode(bytes(chunk))
        self._buffer += chunk

        # Only complete lines are parsed; the tail waits for the next chunk.
        head, sep, tail = self._buffer.rpartition("\n")
        if not sep:
            return []
        self._buffer = tail

        frames: List[SSEFrame] = []
        for line in head.split("\n"):
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def close(self) -> List[SSEFrame]:
        """Flush the partial line and any pending frame at end of stream."""
        frames: List[SSEFrame] = []
        rest = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        for line in rest.split("\n"):
            if not line.strip():
                continue
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)
        if self._event and self._data is not None:
            frame = self._emit()
            if frame is not None:
                frames.append(frame)
        self._reset()
        return frames

    def _process_line(self, line: str) -> Optional[SSEFrame]:
        if line.endswith("\r"):
            line = line[:-1]
        if line.startswith("event:"):
            self._event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            fragment = line[len("data:"):].strip()
            self._data = fragment if self._data is None else f"{self._data}\n{fragment}"
        elif not line.strip():
            frame = self._emit() if self._event and self._data is not None else None
            self._reset()
            return frame
        # id:, retry: and ":" comment lines carry nothing we use
        return None

    def _emit(self) -> Optional[SSEFrame]:
        try:
            payload = json.loads(self._data)
        except json.JSONDecodeError:
            self.skipped += 1
            logging.debug(json.dumps({"tool": "sse", "fn": "parse_skip", "event": self._event}))
            return None
        return SSEFrame(event=self._event, data=self._data, payload=payload)

    def _reset(self) -> None:
        self._event = None
        self._data = None


def parse_sse_text(text: str) -> List[SSEFrame]:
    parser = SSEParser()
    return parser.feed(text) + parser.close()


def iter_frames(chunks) -> Iterator[SSEFrame]:
    parser = SSEParser()
    for chunk in chunks:
        yield from parser.feed(chunk)
    yield from parser.close()


async def aiter_frames(chunks: AsyncIterable[Chunk]):
    parser = SSEParser()
    async for chunk in chunks:
        for frame in parser.feed(chunk):
            yield frame
    for frame in parser.close():
        yield frame
