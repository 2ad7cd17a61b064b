"""Tests for the buffer formatter."""

from __future__ import annotations

import pytest

from codeforge.editor.formatting import format_source
from codeforge.errors import FormatError


def test_javascript_is_reindented() -> None:
    assert format_source("if(a){b()}", "javascript") == "if (a) {\n  b()\n}"


def test_json_is_pretty_printed() -> None:
    assert format_source('{"a":[1,2]}', "json") == '{\n  "a": [\n    1,\n    2\n  ]\n}'


def test_invalid_json_cannot_be_formatted() -> None:
    with pytest.raises(FormatError, match="Cannot format code"):
        format_source("{broken", "json")


def test_html_tags_are_split_onto_lines() -> None:
    assert format_source("<div><p>Hi</p></div>", "html") == "<div>\n<p>Hi</p>\n</div>"


def test_unsupported_language() -> None:
    with pytest.raises(FormatError):
        format_source("puts 1", "ruby")
