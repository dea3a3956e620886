"""Tests for tool-argument JSON helpers."""

from __future__ import annotations

import pytest

from wavecore.errors import ToolArgumentError
from wavecore.tricks.partial_json import (
    extract_complete_params,
    format_compact_params,
    parse_tool_arguments,
    safe_tool_arguments,
)


class TestExtractCompleteParams:
    def test_complete_object(self) -> None:
        text = '{"path": "a.txt", "count": 3, "force": true, "mode": null}'
        assert extract_complete_params(text) == {
            "path": "a.txt", "count": 3, "force": True, "mode": None,
        }

    def test_unterminated_string_is_left_out(self) -> None:
        assert extract_complete_params('{"path": "a.txt", "content": "hel') == {"path": "a.txt"}

    def test_partial_key_is_left_out(self) -> None:
        assert extract_complete_params('{"path": "a.txt", "con') == {"path": "a.txt"}

    def test_partial_keyword_is_left_out(self) -> None:
        assert extract_complete_params('{"a": 1, "b": tr') == {"a": 1}

    def test_number_at_end_of_input(self) -> None:
        assert extract_complete_params('{"limit": 25') == {"limit": 25}

    def test_negative_and_float_numbers(self) -> None:
        assert extract_complete_params('{"x": -1.5, "y": 2e3}') == {"x": -1.5, "y": 2000.0}

    def test_escaped_quotes_in_strings(self) -> None:
        assert extract_complete_params('{"q": "say \\"hi\\"", "n": 1}') == {"q": 'say "hi"', "n": 1}

    def test_nested_object_is_flattened(self) -> None:
        text = '{"user": {"name": "x", "age": 4}, "ok": false}'
        assert extract_complete_params(text) == {"name": "x", "age": 4, "ok": False}

    def test_arrays_are_skipped(self) -> None:
        assert extract_complete_params('{"files": ["a", "b"], "n": 2}') == {"n": 2}

    def test_unclosed_array_stops(self) -> None:
        assert extract_complete_params('{"n": 2, "files": ["a", "b') == {"n": 2}

    @pytest.mark.parametrize("text", [None, "", "   ", "no braces", 42])
    def test_degenerate_input(self, text: object) -> None:
        assert extract_complete_params(text) == {}

    def test_grows_monotonically(self) -> None:
        full = '{"path": "src/main.py", "replace": true, "mode": "w"}'
        seen: dict[str, object] = {}
        for end in range(len(full) + 1):
            current = extract_complete_params(full[:end])
            for key, value in seen.items():
                assert current.get(key) == value
            seen = current
        assert seen == {"path": "src/main.py", "replace": True, "mode": "w"}


class TestParseToolArguments:
    def test_valid(self) -> None:
        assert parse_tool_arguments("read", '{"path": "a"}') == {"path": "a"}

    @pytest.mark.parametrize("raw", [None, "", "  \n"])
    def test_blank_means_no_arguments(self, raw: str | None) -> None:
        assert parse_tool_arguments("read", raw) == {}

    def test_invalid_json(self) -> None:
        with pytest.raises(ToolArgumentError) as info:
            parse_tool_arguments("read", '{"path": ')
        assert "Failed to parse tool arguments for read" in str(info.value)

    def test_non_object(self) -> None:
        with pytest.raises(ToolArgumentError):
            parse_tool_arguments("read", "[1, 2]")


class TestSafeToolArguments:
    def test_valid_passthrough(self) -> None:
        assert safe_tool_arguments('{"a": 1}') == '{"a": 1}'

    def test_invalid_becomes_empty_object(self) -> None:
        assert safe_tool_arguments("{oops") == "{}"
        assert safe_tool_arguments("") == "{}"


class TestFormatCompactParams:
    def test_renders_pairs(self) -> None:
        assert format_compact_params({"path": "a.txt", "n": 2}) == "path=a.txt, n=2"

    def test_truncates(self) -> None:
        line = format_compact_params({"content": "x" * 200}, limit=20)
        assert len(line) == 20
        assert line.endswith("...")
