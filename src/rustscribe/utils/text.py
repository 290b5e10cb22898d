"""Text helpers for doc comments, identifiers and line layout."""

from __future__ import annotations

import re
from typing import Iterable

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_DOC_ATTR = re.compile(r'^#!?\[\s*doc\s*=\s*r?#*"(?P<body>.*)"#*\s*\]$', re.DOTALL)
_TRAILING_PUNCT = re.compile(r"[\s.!?:;,]+$")


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def doc_comment_lines(raw: str) -> list[str]:
    """Return the content lines of one doc comment or ``doc`` attribute.

    Comment markers (``///``, ``//!``, ``/** */``, ``/*! */``) are removed along
    with the single space conventionally following them.
    """
    if raw.startswith(("///", "//!")):
        body = raw[3:]
        return [body[1:] if body.startswith(" ") else body]
    if raw.startswith(("/**", "/*!")):
        body = raw[3:-2]
        lines = []
        for line in body.splitlines():
            stripped = line.strip()
            if stripped.startswith("*"):
                stripped = stripped[1:].lstrip() if stripped != "*" else ""
            lines.append(stripped)
        while lines and not lines[0]:
            lines.pop(0)
        while lines and not lines[-1]:
            lines.pop()
        return lines
    match = _DOC_ATTR.match(raw.strip())
    if match:
        body = match.group("body").replace('\\"', '"').replace("\\n", "\n")
        return [line.strip() for line in body.splitlines()] or [""]
    return [raw]


def split_doc_pieces(existing: str) -> list[str]:
    """Split captured doc text back into individual comments and attributes."""
    pieces: list[str] = []
    current: list[str] = []
    for line in existing.splitlines():
        stripped = line.strip()
        if not current and not stripped.startswith(("/**", "/*!", "#[", "#![")):
            pieces.append(stripped)
            continue
        current.append(stripped)
        closer = "]" if current[0].startswith("#") else "*/"
        if stripped.endswith(closer):
            pieces.append("\n".join(current))
            current = []
    if current:
        pieces.append("\n".join(current))
    return pieces


def doc_content_lines(existing: str) -> list[str]:
    """Content lines of a captured doc block, markers removed."""
    lines: list[str] = []
    for piece in split_doc_pieces(existing):
        lines.extend(doc_comment_lines(piece))
    return lines


def doc_text(existing: str) -> str:
    """Content of an existing doc block with markers and blank lines removed."""
    return normalize_whitespace(doc_content_lines(existing))


def normalize_sentence(line: str) -> str:
    """Case-fold, collapse whitespace and drop trailing punctuation."""
    collapsed = " ".join(line.split()).casefold()
    return _TRAILING_PUNCT.sub("", collapsed)


def split_identifier(name: str) -> list[str]:
    """Split ``snake_case`` and ``CamelCase`` identifiers into lowercase words."""
    if name.startswith("r#"):
        name = name[2:]
    words: list[str] = []
    for chunk in name.split("_"):
        if not chunk:
            continue
        for word in _CAMEL_BOUNDARY.split(chunk):
            # Acronyms such as DNS stay as they are.
            words.append(word if word.isupper() and len(word) > 1 else word.lower())
    return words


def humanize_identifier(name: str) -> str:
    words = split_identifier(name)
    if not words:
        return name
    phrase = " ".join(words)
    return phrase[0].upper() + phrase[1:]


def detect_newline(text: str) -> str:
    """Return the dominant newline sequence of ``text`` (``\\n`` when none)."""
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    return "\r\n" if crlf > lf else "\n"


def line_start(text: str, offset: int) -> int:
    """Offset of the first character of the line containing ``offset``.

    A byte order mark at the very start of ``text`` is not part of the first line.
    """
    start = text.rfind("\n", 0, offset) + 1
    if start == 0 and text.startswith("\ufeff") and offset > 0:
        return 1
    return start


def indentation(text: str, offset: int) -> str:
    """Leading whitespace of the line containing ``offset``."""
    start = line_start(text, offset)
    end = start
    while end < len(text) and text[end] in " \t":
        end += 1
    return text[start:end]


def starts_line(text: str, offset: int) -> bool:
    """True when only whitespace precedes ``offset`` on its line."""
    return not text[line_start(text, offset) : offset].strip()
