"""File helpers for importing and exporting project source."""

from __future__ import annotations

import codecs
import os
import re
import tempfile
from pathlib import Path

__all__ = [
    "LANGUAGE_EXTENSIONS",
    "read_text",
    "write_text",
    "language_for_path",
    "export_filename",
]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}
LANGUAGE_EXTENSIONS: dict[str, str] = {
    "javascript": ".js",
    "python": ".py",
    "java": ".java",
    "html": ".html",
    "css": ".css",
    "cpp": ".cpp",
    "c": ".c",
    "go": ".go",
    "ruby": ".rb",
    "json": ".json",
}
_SUFFIX_LANGUAGES: dict[str, str] = {suffix: language for language, suffix in LANGUAGE_EXTENSIONS.items()}
_SUFFIX_LANGUAGES.update({".mjs": "javascript", ".htm": "html", ".cc": "cpp", ".cxx": "cpp", ".h": "c"})


def read_text(path: Path | str) -> str:
    """Read a source file, honouring a byte-order mark and normalizing newlines."""

    raw = Path(path).read_bytes()
    encoding = next((name for bom, name in _BOM_MAP.items() if raw.startswith(bom)), "utf-8")
    text = raw.decode(encoding)
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n").replace("\r", "\n")


def write_text(path: Path | str, content: str, *, encoding: str = "utf-8") -> Path:
    """Write ``content`` atomically: readers see either the old file or the new one."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    descriptor, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def language_for_path(path: Path | str) -> str | None:
    """Infer a project language from a file suffix."""

    return _SUFFIX_LANGUAGES.get(Path(path).suffix.lower())


def export_filename(name: str, language: str) -> str:
    """Return a safe ``<name>.<ext>`` filename for downloading a project."""

    slug = re.sub(r"[^A-Za-z0-9._ -]", "_", name or "").strip(" ._") or "untitled"
    normalized = (language or "").strip().lower()
    suffix = LANGUAGE_EXTENSIONS.get(normalized) or (f".{normalized}" if normalized else ".txt")
    return f"{slug}{suffix}"
