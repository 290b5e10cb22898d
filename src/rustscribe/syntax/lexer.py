"""Lossless Rust lexer.

Every character of the input ends up in exactly one token. Whitespace and
comments are trivia: they are attached to the next significant token (or to the
end-of-file token) so that concatenating ``Token.full_text()`` over the stream
reproduces the source.
"""

from __future__ import annotations

import logging
from typing import Iterator

from rustscribe.errors import ParseError
from rustscribe.models import Token, TokenKind

LOGGER = logging.getLogger(__name__)

_COMBINED_PUNCT = ("::", "->", "=>")
BOM = "\ufeff"


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isidentifier()


def _is_ident_continue(ch: str) -> bool:
    return ch == "_" or ch.isalnum() or ("a" + ch).isidentifier()


def _describe(text: str, offset: int) -> str:
    if offset >= len(text):
        return "end of file"
    return repr(text[offset])


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.length = len(text)

    def char(self, pos: int) -> str:
        return self.text[pos] if pos < self.length else ""

    def scan(self) -> Iterator[tuple[TokenKind, int, int]]:
        pos = 0
        if self.text.startswith(BOM):
            yield TokenKind.WHITESPACE, 0, len(BOM)
            pos = len(BOM)
        if self._has_shebang(pos):
            end = self._line_end(pos)
            yield TokenKind.LINE_COMMENT, pos, end
            pos = end
        while pos < self.length:
            kind, end = self._next(pos)
            yield kind, pos, end
            pos = end

    def _has_shebang(self, pos: int) -> bool:
        if not self.text.startswith("#!", pos):
            return False
        rest = self.text[pos + 2 :].lstrip(" \t")
        return not rest.startswith("[")

    def _line_end(self, pos: int) -> int:
        end = self.text.find("\n", pos)
        if end == -1:
            return self.length
        if end > pos and self.text[end - 1] == "\r":
            return end - 1
        return end

    def _next(self, pos: int) -> tuple[TokenKind, int]:
        text = self.text
        ch = text[pos]

        if ch == "\n":
            return TokenKind.NEWLINE, pos + 1
        if ch == "\r" and self.char(pos + 1) == "\n":
            return TokenKind.NEWLINE, pos + 2
        if ch.isspace():
            end = pos + 1
            while end < self.length and text[end].isspace() and text[end] != "\n":
                if text[end] == "\r" and self.char(end + 1) == "\n":
                    break
                end += 1
            return TokenKind.WHITESPACE, end

        if text.startswith("//", pos):
            end = self._line_end(pos)
            body = text[pos:end]
            if body.startswith("///") and not body.startswith("////"):
                return TokenKind.DOC_COMMENT, end
            if body.startswith("//!"):
                return TokenKind.INNER_DOC_COMMENT, end
            return TokenKind.LINE_COMMENT, end

        if text.startswith("/*", pos):
            return self._block_comment(pos)

        if ch in "rbc" and self._string_prefix(pos) is not None:
            return self._prefixed_literal(pos)

        if ch == "r" and text.startswith("r#", pos) and _is_ident_start(self.char(pos + 2)):
            end = pos + 2
            while end < self.length and _is_ident_continue(text[end]):
                end += 1
            return TokenKind.IDENT, end

        if _is_ident_start(ch):
            end = pos + 1
            while end < self.length and _is_ident_continue(text[end]):
                end += 1
            return TokenKind.IDENT, end

        if ch.isdigit():
            return TokenKind.LITERAL, self._number(pos)

        if ch == '"':
            return TokenKind.LITERAL, self._quoted(pos + 1, '"', pos)

        if ch == "'":
            return self._quote(pos)

        for punct in _COMBINED_PUNCT:
            if text.startswith(punct, pos):
                return TokenKind.PUNCT, pos + len(punct)
        return TokenKind.PUNCT, pos + 1

    def _block_comment(self, pos: int) -> tuple[TokenKind, int]:
        depth = 0
        end = pos
        while end < self.length:
            if self.text.startswith("/*", end):
                depth += 1
                end += 2
            elif self.text.startswith("*/", end):
                depth -= 1
                end += 2
                if depth == 0:
                    break
            else:
                end += 1
        if depth != 0:
            raise ParseError(pos, "'*/'", "end of file")
        body = self.text[pos:end]
        if body.startswith("/**") and not body.startswith("/***") and body != "/**/":
            return TokenKind.DOC_COMMENT, end
        if body.startswith("/*!"):
            return TokenKind.INNER_DOC_COMMENT, end
        return TokenKind.BLOCK_COMMENT, end

    def _string_prefix(self, pos: int) -> str | None:
        for prefix in ("br", "cr", "r", "b", "c"):
            if not self.text.startswith(prefix, pos):
                continue
            after = self.char(pos + len(prefix))
            if prefix.endswith("r"):
                probe = pos + len(prefix)
                while self.char(probe) == "#":
                    probe += 1
                if self.char(probe) == '"':
                    return prefix
            elif after == '"' or (prefix == "b" and after == "'"):
                return prefix
        return None

    def _prefixed_literal(self, pos: int) -> tuple[TokenKind, int]:
        prefix = self._string_prefix(pos)
        start = pos + len(prefix)
        if prefix.endswith("r"):
            hashes = 0
            while self.char(start + hashes) == "#":
                hashes += 1
            closing = '"' + "#" * hashes
            found = self.text.find(closing, start + hashes + 1)
            if found == -1:
                raise ParseError(pos, repr(closing), "end of file")
            end = found + len(closing)
        elif self.char(start) == "'":
            end = self._quoted(start + 1, "'", pos)
        else:
            end = self._quoted(start + 1, '"', pos)
        return TokenKind.LITERAL, self._suffix(end)

    def _quoted(self, pos: int, quote: str, start: int) -> int:
        end = pos
        while end < self.length:
            ch = self.text[end]
            if ch == "\\":
                end += 2
                continue
            if ch == quote:
                return self._suffix(end + 1)
            end += 1
        raise ParseError(start, repr(quote), "end of file")

    def _suffix(self, pos: int) -> int:
        if pos < self.length and _is_ident_start(self.text[pos]):
            while pos < self.length and _is_ident_continue(self.text[pos]):
                pos += 1
        return pos

    def _quote(self, pos: int) -> tuple[TokenKind, int]:
        nxt = self.char(pos + 1)
        if nxt == "\\":
            return TokenKind.LITERAL, self._quoted(pos + 1, "'", pos)
        if nxt and self.char(pos + 2) == "'":
            return TokenKind.LITERAL, pos + 3
        if _is_ident_start(nxt):
            end = pos + 2
            while end < self.length and _is_ident_continue(self.text[end]):
                end += 1
            return TokenKind.LIFETIME, end
        raise ParseError(pos, "character literal or lifetime", _describe(self.text, pos + 1))

    def _number(self, pos: int) -> int:
        text = self.text
        end = pos + 1
        radix = text[pos : pos + 2].lower() in ("0x", "0o", "0b")
        seen_dot = False
        while end < self.length:
            ch = text[end]
            if ch == "_" or ch.isalnum():
                end += 1
            elif (
                ch == "."
                and not radix
                and not seen_dot
                and self.char(end + 1).isdigit()
            ):
                seen_dot = True
                end += 1
            elif ch in "+-" and not radix and text[end - 1] in "eE" and self.char(end + 1).isdigit():
                end += 1
            else:
                break
        return end


def tokenize(text: str) -> list[Token]:
    """Split ``text`` into significant tokens carrying their leading trivia.

    The returned list always ends with an ``EOF`` token holding any trailing
    trivia.
    """
    tokens: list[Token] = []
    trivia: list[Token] = []
    for kind, start, end in _Scanner(text).scan():
        token = Token(kind, text[start:end], start, end)
        if kind.is_trivia:
            trivia.append(token)
            continue
        tokens.append(Token(kind, token.text, start, end, tuple(trivia)))
        trivia = []
    tokens.append(Token(TokenKind.EOF, "", len(text), len(text), tuple(trivia)))
    LOGGER.debug("Lexed %d significant tokens", len(tokens) - 1)
    return tokens


def iter_all(tokens: list[Token]) -> Iterator[Token]:
    """Yield trivia and significant tokens in source order."""
    for token in tokens:
        yield from token.leading
        yield token
