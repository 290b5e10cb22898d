"""Structural Rust parser producing a lossless concrete syntax tree.

Parsing happens in two passes. The first groups tokens into delimited token
trees (``()``, ``[]`` and ``{}``); the second recognises items inside module,
``impl``, ``trait`` and ``extern`` bodies along with struct fields and enum
variants. Function bodies and expressions stay opaque token trees since no
documentable item lives there.
"""

from __future__ import annotations

import logging
from typing import Sequence

from rustscribe.errors import ParseError
from rustscribe.models import Element, NodeKind, SyntaxNode, Token, TokenKind
from rustscribe.syntax.lexer import tokenize

LOGGER = logging.getLogger(__name__)

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSING = frozenset(_PAIRS.values())

# Qualifier word -> words allowed to follow it (empty means anything).
_QUALIFIER_FOLLOWERS: dict[str, frozenset[str]] = {
    "unsafe": frozenset(),
    "const": frozenset({"fn", "unsafe", "async", "extern"}),
    "async": frozenset({"fn", "unsafe"}),
    "auto": frozenset({"trait"}),
    "default": frozenset({"fn", "type", "const", "unsafe", "async", "impl"}),
    "safe": frozenset({"fn", "static"}),
}
_BODY_KINDS = {
    "mod": NodeKind.MODULE,
    "trait": NodeKind.TRAIT,
    "impl": NodeKind.IMPL,
}


def _is_punct(element: Element | None, value: str) -> bool:
    return isinstance(element, Token) and element.is_punct(value)


def _is_ident(element: Element | None, value: str | None = None) -> bool:
    return isinstance(element, Token) and element.is_ident(value)


def _is_literal(element: Element | None) -> bool:
    return isinstance(element, Token) and element.kind is TokenKind.LITERAL


def is_group(element: Element | None, delimiter: str | None = None) -> bool:
    if not isinstance(element, SyntaxNode) or element.kind is not NodeKind.GROUP:
        return False
    return delimiter is None or group_delimiter(element) == delimiter


def group_delimiter(node: SyntaxNode) -> str:
    opener = node.children[0]
    assert isinstance(opener, Token)
    return opener.text


def group_inner(node: SyntaxNode) -> tuple[Element, ...]:
    return node.children[1:-1]


def element_start(element: Element) -> int:
    if isinstance(element, Token):
        return element.start
    first = element.first_token()
    return first.start if first is not None else 0


def _found(element: Element | None) -> str:
    if element is None:
        return "end of block"
    if isinstance(element, Token):
        return repr(element.text)
    return f"{element.kind.value} {element.text().strip()[:20]!r}"


def build_token_trees(tokens: Sequence[Token]) -> list[Element]:
    """Group ``tokens`` (without the trailing EOF) into nested GROUP nodes."""
    stack: list[tuple[Token | None, list[Element]]] = [(None, [])]
    for token in tokens:
        if token.kind is TokenKind.PUNCT and token.text in _PAIRS:
            stack.append((token, []))
        elif token.kind is TokenKind.PUNCT and token.text in _CLOSING:
            opener, children = stack[-1]
            if opener is None or _PAIRS[opener.text] != token.text:
                expected = repr(_PAIRS[opener.text]) if opener is not None else "item"
                raise ParseError(token.start, expected, repr(token.text))
            stack.pop()
            stack[-1][1].append(SyntaxNode(NodeKind.GROUP, (opener, *children, token)))
        else:
            stack[-1][1].append(token)
    if len(stack) > 1:
        opener = stack[-1][0]
        assert opener is not None
        end = tokens[-1].end if tokens else 0
        raise ParseError(end, repr(_PAIRS[opener.text]), "end of file")
    return stack[0][1]


class _Cursor:
    def __init__(self, elements: Sequence[Element]) -> None:
        self.elements = list(elements)
        self.pos = 0

    def peek(self, ahead: int = 0) -> Element | None:
        index = self.pos + ahead
        return self.elements[index] if index < len(self.elements) else None

    def at_end(self) -> bool:
        return self.pos >= len(self.elements)

    def bump(self) -> Element:
        element = self.elements[self.pos]
        self.pos += 1
        return element

    def expect_ident(self, what: str) -> Token:
        element = self.peek()
        if not _is_ident(element):
            raise ParseError(self.offset(), what, _found(element))
        self.pos += 1
        assert isinstance(element, Token)
        return element

    def offset(self) -> int:
        element = self.peek()
        if element is not None:
            return element_start(element)
        if self.elements:
            last = self.elements[-1]
            if isinstance(last, Token):
                return last.end
            tokens = list(last.tokens())
            return tokens[-1].end if tokens else 0
        return 0


def _take_attributes(cursor: _Cursor, out: list[Element], *, inner: bool = False) -> None:
    while _is_punct(cursor.peek(), "#"):
        if inner:
            if not (_is_punct(cursor.peek(1), "!") and is_group(cursor.peek(2), "[")):
                return
            children = (cursor.bump(), cursor.bump(), cursor.bump())
            out.append(SyntaxNode(NodeKind.ATTRIBUTE, children, name="!"))
        else:
            if not is_group(cursor.peek(1), "["):
                return
            children = (cursor.bump(), cursor.bump())
            out.append(SyntaxNode(NodeKind.ATTRIBUTE, children))


def _take_visibility(cursor: _Cursor, out: list[Element]) -> None:
    if not _is_ident(cursor.peek(), "pub"):
        return
    children: list[Element] = [cursor.bump()]
    if is_group(cursor.peek(), "("):
        children.append(cursor.bump())
    out.append(SyntaxNode(NodeKind.VISIBILITY, tuple(children)))


def _take_until(cursor: _Cursor, out: list[Element], *, brace: bool) -> Element:
    """Move elements into ``out`` up to a ``;`` or (optionally) a ``{}`` group.

    Returns the terminating element, which is also appended.
    """
    while not cursor.at_end():
        element = cursor.bump()
        out.append(element)
        if _is_punct(element, ";") or (brace and is_group(element, "{")):
            return element
    expected = "'{' or ';'" if brace else "';'"
    raise ParseError(cursor.offset(), expected, "end of block")


def _split_top_level(elements: Sequence[Element], *, angles: bool) -> list[list[Element] | Token]:
    """Split a delimited list on top-level commas, keeping the commas."""
    parts: list[list[Element] | Token] = []
    current: list[Element] = []
    depth = 0
    track = angles
    for element in elements:
        if track and _is_punct(element, "<"):
            depth += 1
        elif track and _is_punct(element, ">") and depth > 0:
            depth -= 1
        elif track and _is_punct(element, "=") and depth == 0:
            # Past this point we are in an expression where `<` is a comparison.
            track = False
        if isinstance(element, Token) and element.is_punct(",") and depth == 0:
            parts.append(current)
            parts.append(element)
            current = []
            track = angles
            continue
        current.append(element)
    if current:
        parts.append(current)
    return parts


class RustParser:
    """Recognises items within a token-tree forest."""

    def parse(self, text: str) -> SyntaxNode:
        tokens = tokenize(text)
        trees = build_token_trees(tokens[:-1])
        children = self._items(trees, inner_attributes=True)
        return SyntaxNode(NodeKind.SOURCE_FILE, (*children, tokens[-1]))

    def _items(self, elements: Sequence[Element], *, inner_attributes: bool = False) -> list[Element]:
        cursor = _Cursor(elements)
        out: list[Element] = []
        if inner_attributes:
            _take_attributes(cursor, out, inner=True)
        while not cursor.at_end():
            if _is_punct(cursor.peek(), ";"):
                out.append(cursor.bump())
                continue
            out.append(self._item(cursor))
        return out

    def _body(self, group: Element) -> SyntaxNode:
        assert isinstance(group, SyntaxNode)
        inner = self._items(group_inner(group), inner_attributes=True)
        return SyntaxNode(NodeKind.GROUP, (group.children[0], *inner, group.children[-1]))

    def _item(self, cursor: _Cursor) -> SyntaxNode:
        children: list[Element] = []
        _take_attributes(cursor, children)
        _take_visibility(cursor, children)

        head = cursor.peek()
        # Macro invocation or macro_rules! definition.
        if _is_ident(head) and (_is_punct(cursor.peek(1), "!") or _is_punct(cursor.peek(1), "::")):
            if not _is_ident(head, "macro_rules") or _is_punct(cursor.peek(1), "::"):
                return self._macro_call(cursor, children)
            return self._macro_rules(cursor, children)

        self._take_qualifiers(cursor, children)
        keyword = cursor.peek()
        if not _is_ident(keyword):
            raise ParseError(cursor.offset(), "item", _found(keyword))
        assert isinstance(keyword, Token)
        word = keyword.text

        if word == "fn":
            children.append(cursor.bump())
            name = cursor.expect_ident("function name")
            children.append(name)
            _take_until(cursor, children, brace=True)
            return SyntaxNode(NodeKind.FUNCTION, tuple(children), name=name.text)

        if word == "struct" or (word == "union" and _is_ident(cursor.peek(1))):
            kind = NodeKind.STRUCT if word == "struct" else NodeKind.UNION
            children.append(cursor.bump())
            name = cursor.expect_ident(f"{word} name")
            children.append(name)
            self._struct_rest(cursor, children)
            return SyntaxNode(kind, tuple(children), name=name.text)

        if word == "enum":
            children.append(cursor.bump())
            name = cursor.expect_ident("enum name")
            children.append(name)
            _take_until(cursor, children, brace=True)
            body = children.pop()
            if not is_group(body, "{"):
                raise ParseError(element_start(body), "'{'", _found(body))
            children.append(self._variants(body))
            return SyntaxNode(NodeKind.ENUM, tuple(children), name=name.text)

        if word in _BODY_KINDS:
            return self._container(cursor, children, word)

        if word == "extern":
            return self._extern(cursor, children)

        if word in ("const", "static", "type"):
            children.append(cursor.bump())
            if word == "static" and _is_ident(cursor.peek(), "mut"):
                children.append(cursor.bump())
            name = cursor.expect_ident(f"{word} name")
            children.append(name)
            _take_until(cursor, children, brace=False)
            kind = {
                "const": NodeKind.CONST,
                "static": NodeKind.STATIC,
                "type": NodeKind.TYPE_ALIAS,
            }[word]
            return SyntaxNode(kind, tuple(children), name=name.text)

        if word == "use":
            _take_until(cursor, children, brace=False)
            return SyntaxNode(NodeKind.USE, tuple(children))

        raise ParseError(keyword.start, "item", repr(word))

    def _take_qualifiers(self, cursor: _Cursor, children: list[Element]) -> None:
        while True:
            element = cursor.peek()
            if _is_ident(element, "extern"):
                if not _is_ident(self._after_abi(cursor), "fn"):
                    return
                children.append(cursor.bump())
                if _is_literal(cursor.peek()):
                    children.append(cursor.bump())
                continue
            if not _is_ident(element):
                return
            assert isinstance(element, Token)
            following = _QUALIFIER_FOLLOWERS.get(element.text)
            if following is None:
                return
            nxt = cursor.peek(1)
            if following and not (isinstance(nxt, Token) and nxt.text in following):
                return
            children.append(cursor.bump())

    @staticmethod
    def _after_abi(cursor: _Cursor) -> Element | None:
        if _is_literal(cursor.peek(1)):
            return cursor.peek(2)
        return cursor.peek(1)

    def _container(self, cursor: _Cursor, children: list[Element], word: str) -> SyntaxNode:
        kind = _BODY_KINDS[word]
        children.append(cursor.bump())
        name: str | None = None
        if kind is not NodeKind.IMPL:
            name_token = cursor.expect_ident(f"{word} name")
            children.append(name_token)
            name = name_token.text
        end = _take_until(cursor, children, brace=True)
        if is_group(end, "{"):
            children[-1] = self._body(end)
        return SyntaxNode(kind, tuple(children), name=name)

    def _extern(self, cursor: _Cursor, children: list[Element]) -> SyntaxNode:
        children.append(cursor.bump())
        if _is_ident(cursor.peek(), "crate"):
            children.append(cursor.bump())
            name = cursor.expect_ident("crate name")
            children.append(name)
            _take_until(cursor, children, brace=False)
            return SyntaxNode(NodeKind.EXTERN_CRATE, tuple(children), name=name.text)
        if isinstance(cursor.peek(), Token) and cursor.peek().kind is TokenKind.LITERAL:
            children.append(cursor.bump())
        body = cursor.peek()
        if not is_group(body, "{"):
            raise ParseError(cursor.offset(), "'{'", _found(body))
        cursor.bump()
        children.append(self._body(body))
        return SyntaxNode(NodeKind.EXTERN_BLOCK, tuple(children))

    def _macro_call(self, cursor: _Cursor, children: list[Element]) -> SyntaxNode:
        while _is_ident(cursor.peek()) or _is_punct(cursor.peek(), "::"):
            children.append(cursor.bump())
        if not _is_punct(cursor.peek(), "!"):
            raise ParseError(cursor.offset(), "'!'", _found(cursor.peek()))
        children.append(cursor.bump())
        if _is_ident(cursor.peek()):
            children.append(cursor.bump())
        body = cursor.peek()
        if not is_group(body):
            raise ParseError(cursor.offset(), "macro body", _found(body))
        children.append(cursor.bump())
        if not is_group(body, "{"):
            if not _is_punct(cursor.peek(), ";"):
                raise ParseError(cursor.offset(), "';'", _found(cursor.peek()))
            children.append(cursor.bump())
        return SyntaxNode(NodeKind.MACRO_CALL, tuple(children))

    def _macro_rules(self, cursor: _Cursor, children: list[Element]) -> SyntaxNode:
        children.append(cursor.bump())
        children.append(cursor.bump())
        name = cursor.expect_ident("macro name")
        children.append(name)
        body = cursor.peek()
        if not is_group(body):
            raise ParseError(cursor.offset(), "macro body", _found(body))
        children.append(cursor.bump())
        if not is_group(body, "{"):
            if not _is_punct(cursor.peek(), ";"):
                raise ParseError(cursor.offset(), "';'", _found(cursor.peek()))
            children.append(cursor.bump())
        return SyntaxNode(NodeKind.MACRO, tuple(children), name=name.text)

    def _struct_rest(self, cursor: _Cursor, children: list[Element]) -> None:
        header_done = False
        while not cursor.at_end():
            element = cursor.bump()
            if is_group(element, "{"):
                children.append(self._fields(element))
                return
            if is_group(element, "(") and not header_done and not self._in_generics(children):
                children.append(self._tuple_fields(element))
                header_done = True
                continue
            if _is_ident(element, "where"):
                header_done = True
            children.append(element)
            if _is_punct(element, ";"):
                return
        raise ParseError(cursor.offset(), "'{' or ';'", "end of block")

    @staticmethod
    def _in_generics(children: list[Element]) -> bool:
        depth = 0
        for element in children:
            if _is_punct(element, "<"):
                depth += 1
            elif _is_punct(element, ">"):
                depth -= 1
        return depth > 0

    def _field(self, segment: list[Element], *, index: int | None) -> SyntaxNode:
        cursor = _Cursor(segment)
        children: list[Element] = []
        _take_attributes(cursor, children)
        _take_visibility(cursor, children)
        if index is None:
            name = cursor.expect_ident("field name")
            children.append(name)
            if not _is_punct(cursor.peek(), ":"):
                raise ParseError(cursor.offset(), "':'", _found(cursor.peek()))
            field_name = name.text
        else:
            field_name = str(index)
        if cursor.at_end() and index is not None:
            raise ParseError(cursor.offset(), "field type", "','")
        while not cursor.at_end():
            children.append(cursor.bump())
        return SyntaxNode(NodeKind.FIELD, tuple(children), name=field_name)

    def _fields(self, group: Element) -> SyntaxNode:
        assert isinstance(group, SyntaxNode)
        inner: list[Element] = []
        for part in _split_top_level(group_inner(group), angles=True):
            if isinstance(part, Token):
                inner.append(part)
            else:
                inner.append(self._field(part, index=None))
        return SyntaxNode(NodeKind.GROUP, (group.children[0], *inner, group.children[-1]))

    def _tuple_fields(self, group: Element) -> SyntaxNode:
        assert isinstance(group, SyntaxNode)
        inner: list[Element] = []
        index = 0
        for part in _split_top_level(group_inner(group), angles=True):
            if isinstance(part, Token):
                inner.append(part)
            else:
                inner.append(self._field(part, index=index))
                index += 1
        return SyntaxNode(NodeKind.GROUP, (group.children[0], *inner, group.children[-1]))

    def _variants(self, group: Element) -> SyntaxNode:
        assert isinstance(group, SyntaxNode)
        inner: list[Element] = []
        for part in _split_top_level(group_inner(group), angles=False):
            if isinstance(part, Token):
                inner.append(part)
                continue
            cursor = _Cursor(part)
            children: list[Element] = []
            _take_attributes(cursor, children)
            _take_visibility(cursor, children)
            name = cursor.expect_ident("variant name")
            children.append(name)
            if is_group(cursor.peek(), "{"):
                children.append(self._fields(cursor.bump()))
            elif is_group(cursor.peek(), "("):
                children.append(self._tuple_fields(cursor.bump()))
            while not cursor.at_end():
                children.append(cursor.bump())
            inner.append(SyntaxNode(NodeKind.VARIANT, tuple(children), name=name.text))
        return SyntaxNode(NodeKind.GROUP, (group.children[0], *inner, group.children[-1]))


def parse(text: str) -> SyntaxNode:
    """Parse Rust source into a lossless SOURCE_FILE node.

    Raises:
        ParseError: when the source cannot be structured into items.
    """
    root = RustParser().parse(text)
    LOGGER.debug("Parsed %d top-level elements", len(root.children) - 1)
    return root
