"""Buffer formatting used by the editor's "Format" tool."""

from __future__ import annotations

import json
import re

import jsbeautifier

from ..errors import FormatError

__all__ = ["format_source"]

_ADJACENT_TAGS = re.compile(r"><")


def _format_javascript(text: str) -> str:
    options = jsbeautifier.default_options()
    options.indent_size = 2
    return jsbeautifier.beautify(text, options)


def _format_json(text: str) -> str:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FormatError("Cannot format code") from exc
    return json.dumps(data, indent=2, ensure_ascii=False)


def _format_html(text: str) -> str:
    return _ADJACENT_TAGS.sub(">\n<", text)


_FORMATTERS = {
    "javascript": _format_javascript,
    "json": _format_json,
    "html": _format_html,
}


def format_source(text: str, language: str) -> str:
    """Return ``text`` reformatted for ``language``.

    Raises:
        FormatError: if the language has no formatter or ``text`` cannot be parsed.
    """

    formatter = _FORMATTERS.get((language or "").strip().lower())
    if formatter is None:
        raise FormatError("Cannot format code")
    return formatter(text)
