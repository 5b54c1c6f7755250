"""Incremental consumer for the streamed chat body.

The chat endpoint relays the upstream payload unparsed. Each record is one
line holding a JSON object, optionally framed as an SSE ``data:`` line, whose
``response`` field is the next text delta. Transport fragments do not line up
with records: a fragment may end inside a multi-byte UTF-8 sequence or in the
middle of a JSON object, so both the undecoded bytes and the unterminated line
are carried into the next fragment.
"""

from __future__ import annotations

import codecs
import enum
import json
import logging
from typing import AsyncIterable, Callable, Optional

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data:"
_DONE_SENTINEL = "[DONE]"


class StreamState(str, enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class StreamConsumer:
    """Reassemble one assistant reply from streamed fragments."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending_line = ""
        self._parts: list[str] = []
        self.state = StreamState.IDLE
        self.skipped_lines = 0
        self.error: Optional[BaseException] = None

    @property
    def text(self) -> str:
        """The reply assembled so far, in arrival order."""

        return "".join(self._parts)

    def feed(self, fragment: bytes) -> list[str]:
        """Consume one transport fragment and return the deltas it completed."""

        self._ensure_open()
        self.state = StreamState.STREAMING

        decoded = self._decoder.decode(fragment)
        if not decoded:
            return []

        lines = (self._pending_line + decoded).split("\n")
        self._pending_line = lines.pop()

        deltas: list[str] = []
        for line in lines:
            delta = self._parse_line(line)
            if delta:
                self._parts.append(delta)
                deltas.append(delta)
        return deltas

    def finish(self) -> str:
        """Mark the transport as ended and return the assembled reply."""

        self._ensure_open()
        tail = self._pending_line + self._decoder.decode(b"", final=True)
        self._pending_line = ""
        for line in tail.split("\n"):
            delta = self._parse_line(line)
            if delta:
                self._parts.append(delta)

        self.state = StreamState.COMPLETE
        if self.skipped_lines:
            logger.warning(
                "Stream completed with %d unparseable line(s) skipped",
                self.skipped_lines,
            )
        return self.text

    def fail(self, exc: BaseException) -> None:
        """Abandon the turn; the partial reply is discarded, not salvaged."""

        self.state = StreamState.FAILED
        self.error = exc
        self._parts.clear()
        self._pending_line = ""
        self._decoder.reset()

    async def consume(
        self,
        fragments: AsyncIterable[bytes],
        on_update: Callable[[str], None] | None = None,
    ) -> str:
        """Drive the consumer from an async byte iterator until it ends.

        ``on_update`` receives the full reply text after every delta, in
        fragment-arrival order.
        """

        try:
            async for fragment in fragments:
                if self.feed(fragment) and on_update is not None:
                    on_update(self.text)
            before = len(self._parts)
            reply = self.finish()
            if len(self._parts) > before and on_update is not None:
                on_update(reply)
            return reply
        except Exception as exc:
            self.fail(exc)
            raise

    def _ensure_open(self) -> None:
        if self.state in (StreamState.COMPLETE, StreamState.FAILED):
            raise RuntimeError(f"Stream already {self.state.value}")

    def _parse_line(self, raw_line: str) -> str:
        line = raw_line.strip()
        if not line or line.startswith(":"):
            return ""
        if line.startswith(_DATA_PREFIX):
            line = line[len(_DATA_PREFIX) :].strip()
        elif line.startswith(("event:", "id:", "retry:")):
            return ""
        if not line or line == _DONE_SENTINEL:
            return ""

        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            self.skipped_lines += 1
            logger.warning(
                "Skipping unparseable stream line (%s): %.200r", exc.msg, line
            )
            return ""

        if not isinstance(record, dict):
            return ""
        delta = record.get("response")
        return delta if isinstance(delta, str) else ""


__all__ = ["StreamConsumer", "StreamState"]
