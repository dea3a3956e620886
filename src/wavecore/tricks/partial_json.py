"""Tool-argument JSON helpers.

Two very different parsers live here:

- ``extract_complete_params`` reads the arguments text of a tool call
  while it is still streaming and returns whichever key/value pairs are
  already complete. It is only ever used for display.
- ``parse_tool_arguments`` is the strict parse applied to the final text
  before a tool is executed.

Known quirk: ``extract_complete_params`` does not keep nested objects as
values. When a value is an object its inner pairs are reported as if they
were top-level keys, e.g. ``{"user": {"name": "x"}}`` yields
``{"name": "x"}``. Callers that render previews rely on this.
"""

from __future__ import annotations

import json
import math
from typing import Any

from wavecore.errors import ToolArgumentError

_NUMBER_CHARS = frozenset("0123456789+-.eE")
_LITERALS: dict[str, Any] = {"true": True, "false": False, "null": None}
_DELIMITERS = frozenset(",}")

COMPACT_PARAMS_LIMIT = 60


def extract_complete_params(text: Any) -> dict[str, Any]:
    """Return the complete key/value pairs of a possibly truncated object.

    Included values: closed strings, numbers followed by ``,``/``}`` or the
    end of input, and ``true``/``false``/``null`` likewise delimited.
    Unterminated strings and partial keywords are left out. Never raises.
    """
    if not isinstance(text, str) or not text.strip():
        return {}

    result: dict[str, Any] = {}
    i = text.find("{")
    if i < 0:
        return {}
    n = len(text)

    while i < n:
        c = text[i]
        if c != '"':
            # braces, commas, whitespace and stray characters between pairs
            i += 1
            continue

        key_end = _scan_string(text, i)
        if key_end < 0:
            break
        ok, key = _decode_string(text[i:key_end])
        i = _skip_ws(text, key_end)
        if i >= n:
            break
        if text[i] != ":" or not ok:
            continue

        i = _skip_ws(text, i + 1)
        if i >= n:
            break
        c = text[i]

        if c == "{":
            # nested object: its pairs surface at this level
            i += 1
        elif c == '"':
            end = _scan_string(text, i)
            if end < 0:
                break
            ok, value = _decode_string(text[i:end])
            if ok:
                result[key] = value
            i = end
        elif c == "[":
            end = _skip_array(text, i)
            if end < 0:
                break
            i = end
        elif c == "-" or c.isdigit():
            end = _scan_while(text, i, _NUMBER_CHARS)
            if _is_delimited(text, end):
                number = _parse_number(text[i:end])
                if number is not None:
                    result[key] = number
            i = end
        elif c.isalpha():
            end = _scan_while_alpha(text, i)
            word = text[i:end]
            if word in _LITERALS and _is_delimited(text, end):
                result[key] = _LITERALS[word]
            i = end
        else:
            i += 1

    return result


def parse_tool_arguments(tool_name: str, raw: str | None) -> dict[str, Any]:
    """Strictly parse a tool call's final arguments text.

    Empty or whitespace-only text means no arguments. Anything else must be
    a JSON object.

    Raises:
        ToolArgumentError: The text is not valid JSON or not an object.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as e:
        raise ToolArgumentError(tool_name, raw) from e
    if not isinstance(parsed, dict):
        raise ToolArgumentError(tool_name, raw)
    return parsed


def safe_tool_arguments(raw: str | None) -> str:
    """Arguments text that is safe to send back to the backend."""
    if not raw or not raw.strip():
        return "{}"
    try:
        json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return "{}"
    return raw


def format_compact_params(params: dict[str, Any], limit: int = COMPACT_PARAMS_LIMIT) -> str:
    """One-line ``key=value`` rendering of preview params."""
    parts: list[str] = []
    for key, value in params.items():
        shown = value if isinstance(value, str) else json.dumps(value)
        parts.append(f"{key}={shown}")
    line = ", ".join(parts).replace("\n", " ")
    if len(line) > limit:
        return line[: limit - 3] + "..."
    return line


# =============================================================================
# Scanner helpers
# =============================================================================


def _scan_string(text: str, start: int) -> int:
    """Index just past the closing quote of the string at *start*, or -1."""
    escape = False
    for i in range(start + 1, len(text)):
        c = text[i]
        if escape:
            escape = False
        elif c == "\\":
            escape = True
        elif c == '"':
            return i + 1
    return -1


def _decode_string(literal: str) -> tuple[bool, str]:
    try:
        value = json.loads(literal)
    except (json.JSONDecodeError, ValueError):
        return False, ""
    return isinstance(value, str), value if isinstance(value, str) else ""


def _skip_array(text: str, start: int) -> int:
    """Index just past the bracket closing the array at *start*, or -1."""
    depth = 0
    i = start
    n = len(text)
    while i < n:
        c = text[i]
        if c == '"':
            i = _scan_string(text, i)
            if i < 0:
                return -1
            continue
        if c == "[":
            depth += 1
        elif c == "]":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return -1


def _skip_ws(text: str, i: int) -> int:
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    return i


def _scan_while(text: str, i: int, allowed: frozenset[str]) -> int:
    n = len(text)
    while i < n and text[i] in allowed:
        i += 1
    return i


def _scan_while_alpha(text: str, i: int) -> int:
    n = len(text)
    while i < n and text[i].isalpha():
        i += 1
    return i


def _is_delimited(text: str, i: int) -> bool:
    """A value ending at *i* is complete if a delimiter or end of input follows."""
    j = _skip_ws(text, i)
    return j >= len(text) or text[j] in _DELIMITERS


def _parse_number(token: str) -> int | float | None:
    try:
        value = json.loads(token)
    except (json.JSONDecodeError, ValueError):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value
