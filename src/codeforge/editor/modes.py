"""Syntax mode loading backed by Pygments lexers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterator

from pygments import lex
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

__all__ = ["ModeLoader", "editor_mode"]

LOGGER = logging.getLogger(__name__)

# Editor mode names differ from project language ids for a few languages.
_EDITOR_MODES: dict[str, str] = {"cpp": "c_cpp", "c": "c_cpp", "go": "golang"}
_LEXER_ALIASES: dict[str, str] = {"c_cpp": "cpp", "golang": "go"}


def editor_mode(language: str) -> str:
    """Return the editor mode name used to highlight ``language``."""

    normalized = (language or "").strip().lower()
    return _EDITOR_MODES.get(normalized, normalized)


class ModeLoader:
    """Makes syntax-aware highlighting available per language.

    Lexers are resolved on a worker thread and cached. Failures only degrade
    highlighting: they are logged and reported as ``False``.
    """

    def __init__(self) -> None:
        self._lexers: dict[str, Lexer] = {}
        self._failed: set[str] = set()

    def is_loaded(self, language: str) -> bool:
        return editor_mode(language) in self._lexers

    async def load(self, language: str) -> bool:
        mode = editor_mode(language)
        if mode in self._lexers:
            return True
        if not mode or mode in self._failed:
            return False
        try:
            lexer = await asyncio.to_thread(_resolve_lexer, mode)
        except ClassNotFound:
            LOGGER.warning("No syntax mode available for %s", language)
            self._failed.add(mode)
            return False
        except Exception:
            LOGGER.warning("Syntax mode loading failed for %s", language, exc_info=True)
            return False
        self._lexers[mode] = lexer
        LOGGER.debug("Loaded syntax mode %s", mode)
        return True

    def tokens(self, text: str, language: str) -> Iterator[tuple[Any, str]]:
        """Yield ``(token_type, value)`` pairs, or nothing if the mode is not loaded."""

        lexer = self._lexers.get(editor_mode(language))
        if lexer is None:
            return iter(())
        return lex(text, lexer)


def _resolve_lexer(mode: str) -> Lexer:
    return get_lexer_by_name(_LEXER_ALIASES.get(mode, mode))
