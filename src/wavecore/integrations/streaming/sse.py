"""Server-sent-event decoding for chat-completion streams.

The response body arrives in arbitrary chunks. ``SSEDecoder`` buffers
across chunk boundaries, splits on newlines, and turns each ``data:`` line
into a ``StreamDelta``. Lines without a trailing newline stay buffered
until the next chunk (or the end of the body).
"""

from __future__ import annotations

import json
from typing import Any

from wavecore.integrations.utilities.logger import get_logger
from wavecore.types.messages import StreamDelta, TokenUsage, ToolCallFragment

logger = get_logger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def parse_data_line(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for other lines.

    ``data: X`` and ``data:X`` are equivalent.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def payload_to_delta(payload: dict[str, Any]) -> StreamDelta:
    """Convert one decoded SSE payload into a delta."""
    delta = StreamDelta()
    choices = payload.get("choices") or []
    if choices:
        choice = choices[0] or {}
        body = choice.get("delta") or {}
        content = body.get("content")
        if isinstance(content, str) and content:
            delta.text = content
        for position, tc in enumerate(body.get("tool_calls") or []):
            fn = tc.get("function") or {}
            delta.tool_call_fragments.append(ToolCallFragment(
                index=tc.get("index", position),
                id=tc.get("id") or None,
                name=fn.get("name") or None,
                arguments=fn.get("arguments") or "",
            ))
        delta.finish_reason = choice.get("finish_reason")
    usage = payload.get("usage")
    if usage:
        delta.usage = TokenUsage.from_wire(usage)
    return delta


class SSEDecoder:
    """Incremental decoder for a ``text/event-stream`` body.

    Malformed payloads never stop decoding. They are collected in
    ``errors`` so the caller can report them once the stream is over.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._done = False
        self.errors: list[str] = []

    @property
    def done(self) -> bool:
        """Whether ``[DONE]`` has been seen."""
        return self._done

    def feed(self, chunk: str) -> list[StreamDelta]:
        """Consume a chunk of body text and return the deltas it completes."""
        if self._done:
            return []
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def finish(self) -> list[StreamDelta]:
        """Decode whatever is left in the buffer at end of body."""
        if self._done or not self._buffer:
            self._buffer = ""
            return []
        rest, self._buffer = self._buffer, ""
        return self._decode_lines([rest])

    def _decode_lines(self, lines: list[str]) -> list[StreamDelta]:
        deltas: list[StreamDelta] = []
        for line in lines:
            data = parse_data_line(line)
            if data is None or not data:
                continue
            if data == DONE_MARKER:
                self._done = True
                self._buffer = ""
                break
            try:
                payload = json.loads(data)
            except json.JSONDecodeError as e:
                self._record_error(data, str(e))
                continue
            if not isinstance(payload, dict):
                self._record_error(data, "payload is not an object")
                continue
            deltas.append(payload_to_delta(payload))
        return deltas

    def _record_error(self, data: str, reason: str) -> None:
        self.errors.append(f"{reason}: {data[:200]}")
        logger.warning("malformed_sse_payload", reason=reason, payload=data[:200])
