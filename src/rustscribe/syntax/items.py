"""Extraction of documentable items from the concrete syntax tree."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Sequence

from rustscribe.models import (
    DocPiece,
    DocStyle,
    Element,
    Item,
    NodeKind,
    SyntaxNode,
    Token,
    TokenKind,
)
from rustscribe.syntax.parser import group_inner, is_group

LOGGER = logging.getLogger(__name__)

DOCUMENTABLE = frozenset(
    {
        NodeKind.MODULE,
        NodeKind.STRUCT,
        NodeKind.UNION,
        NodeKind.ENUM,
        NodeKind.TRAIT,
        NodeKind.FUNCTION,
        NodeKind.FIELD,
        NodeKind.VARIANT,
        NodeKind.CONST,
        NodeKind.STATIC,
        NodeKind.TYPE_ALIAS,
        NodeKind.MACRO,
    }
)

_GATE_ATTRIBUTES = {"cfg", "cfg_attr", "automatically_derived"}
_GATE_SUFFIXES = {"test", "bench"}
_WORDLIKE = {TokenKind.IDENT, TokenKind.LIFETIME, TokenKind.LITERAL}

ROOT_ID = "crate"


@dataclass(frozen=True, slots=True)
class _Scope:
    path: tuple[str, ...] = ()
    public: bool = False
    eligible: bool = True
    depth: int = 0


def compact(tokens: Iterable[Token]) -> str:
    """Render tokens without trivia, spacing only between adjacent words."""
    out: list[str] = []
    previous: Token | None = None
    for token in tokens:
        if previous is not None and previous.kind in _WORDLIKE and token.kind in _WORDLIKE:
            out.append(" ")
        out.append(token.text)
        previous = token
    return "".join(out)


def _element_tokens(elements: Iterable[Element]) -> Iterator[Token]:
    for element in elements:
        if isinstance(element, Token):
            yield element
        else:
            yield from element.tokens()


def _attributes(node: SyntaxNode) -> list[SyntaxNode]:
    return [
        child
        for child in node.children
        if isinstance(child, SyntaxNode) and child.kind is NodeKind.ATTRIBUTE
    ]


def _attribute_path(attribute: SyntaxNode) -> tuple[str, Element | None]:
    """Return the attribute's path (``cfg``, ``tokio::test``) and what follows it."""
    bracket = attribute.children[-1]
    assert isinstance(bracket, SyntaxNode)
    parts: list[str] = []
    inner = group_inner(bracket)
    for element in inner:
        if isinstance(element, Token) and (element.kind is TokenKind.IDENT or element.is_punct("::")):
            parts.append(element.text)
            continue
        return "".join(parts), element
    return "".join(parts), None


def is_gate(attribute: SyntaxNode) -> bool:
    """True for attributes that make the annotated code conditional or test-only."""
    path, _ = _attribute_path(attribute)
    return path in _GATE_ATTRIBUTES or path.split("::")[-1] in _GATE_SUFFIXES


def is_doc_attribute(attribute: SyntaxNode) -> bool:
    path, following = _attribute_path(attribute)
    return path == "doc" and isinstance(following, Token) and following.is_punct("=")


def _attribute_span(attribute: SyntaxNode) -> tuple[int, int]:
    tokens = list(attribute.tokens())
    return tokens[0].start, tokens[-1].end


def _anchor(node: SyntaxNode) -> Token:
    for child in node.children:
        if isinstance(child, SyntaxNode) and child.kind is NodeKind.ATTRIBUTE:
            continue
        token = child if isinstance(child, Token) else child.first_token()
        if token is not None:
            return token
    raise ValueError(f"{node.kind.value} node has no anchor token")


def _body(node: SyntaxNode) -> SyntaxNode | None:
    last = node.children[-1] if node.children else None
    if is_group(last, "{"):
        assert isinstance(last, SyntaxNode)
        return last
    return None


def _header(node: SyntaxNode) -> list[Element]:
    """Children from the anchor up to (not including) a trailing ``{}`` body."""
    children = [
        child
        for child in node.children
        if not (isinstance(child, SyntaxNode) and child.kind is NodeKind.ATTRIBUTE)
    ]
    if _body(node) is not None:
        children = children[:-1]
    return children


def signature_of(node: SyntaxNode) -> str:
    return " ".join(token.text for token in _element_tokens(_header(node)))


def _is_public(node: SyntaxNode) -> bool:
    return any(
        isinstance(child, SyntaxNode) and child.kind is NodeKind.VISIBILITY
        for child in node.children
    )


def _is_unsafe(node: SyntaxNode) -> bool:
    return any(isinstance(child, Token) and child.is_ident("unsafe") for child in node.children)


def _member_nodes(node: SyntaxNode, kind: NodeKind) -> list[SyntaxNode]:
    members: list[SyntaxNode] = []
    for child in node.nodes():
        if child.kind is NodeKind.GROUP:
            members.extend(grand for grand in child.nodes() if grand.kind is kind)
    return members


def _impl_segment(node: SyntaxNode) -> str:
    """Path segment for members of an impl block: ``Type`` or ``<Type as Trait>``."""
    tokens = list(_element_tokens(_header(node)))
    index = 0
    while index < len(tokens) and tokens[index].text in ("unsafe", "default", "impl"):
        index += 1
    if index < len(tokens) and tokens[index].is_punct("<"):
        depth = 0
        while index < len(tokens):
            if tokens[index].is_punct("<"):
                depth += 1
            elif tokens[index].is_punct(">"):
                depth -= 1
                if depth == 0:
                    index += 1
                    break
            index += 1
    rest = tokens[index:]
    for position, token in enumerate(rest):
        if token.is_ident("where"):
            rest = rest[:position]
            break
    depth = 0
    for position, token in enumerate(rest):
        if token.is_punct("<"):
            depth += 1
        elif token.is_punct(">"):
            depth -= 1
        elif token.is_ident("for") and depth == 0:
            trait = compact(rest[:position])
            target = compact(rest[position + 1 :])
            return f"<{target} as {trait}>"
    return compact(rest)


class ItemExtractor:
    """Walks a SOURCE_FILE node and produces items in pre-order."""

    def __init__(self, *, include_root: bool = False) -> None:
        self.include_root = include_root

    def extract(self, root: SyntaxNode) -> list[Item]:
        self._source = root.text()
        self._items: list[Item] = []
        self._seen: Counter[str] = Counter()
        elements = root.children[:-1]
        eof = root.children[-1]
        assert isinstance(eof, Token)
        eligible = not self._gated_inner(elements)
        if self.include_root:
            self._emit_root(root, elements, eof, eligible)
        depth = 1 if self.include_root else 0
        self._walk(elements, _Scope(eligible=eligible, depth=depth))
        LOGGER.debug("Extracted %d items", len(self._items))
        return self._items

    # -- traversal -----------------------------------------------------

    def _walk(self, elements: Sequence[Element], scope: _Scope) -> None:
        for element in elements:
            if isinstance(element, SyntaxNode):
                self._visit(element, scope)

    def _visit(self, node: SyntaxNode, scope: _Scope) -> None:
        kind = node.kind
        own_public = _is_public(node)
        eligible = scope.eligible and not any(is_gate(attr) for attr in _attributes(node))
        inherited = own_public or scope.public

        if kind is NodeKind.MODULE:
            body = _body(node)
            inner = group_inner(body) if body is not None else ()
            eligible = eligible and not self._gated_inner(inner)
            item = self._emit(node, scope, public=inherited, eligible=eligible)
            child_scope = _Scope(
                path=(*scope.path, item.name),
                public=inherited,
                eligible=eligible,
                depth=scope.depth + 1,
            )
            self._walk(inner, child_scope)
        elif kind in (NodeKind.STRUCT, NodeKind.UNION):
            item = self._emit(node, scope, public=inherited, eligible=eligible)
            self._fields(node, item, scope, eligible=eligible, inherit=scope.public)
        elif kind is NodeKind.ENUM:
            item = self._emit(node, scope, public=inherited, eligible=eligible)
            for variant in _member_nodes(node, NodeKind.VARIANT):
                variant_eligible = eligible and not any(is_gate(a) for a in _attributes(variant))
                variant_item = self._emit(
                    variant,
                    scope,
                    public=item.is_public,
                    eligible=variant_eligible,
                    item_id=f"{item.id}::{variant.name}",
                    depth=scope.depth + 1,
                )
                # Variant fields are as visible as the variant itself.
                self._fields(
                    variant,
                    variant_item,
                    scope,
                    eligible=variant_eligible,
                    inherit=True,
                    depth=scope.depth + 2,
                )
        elif kind is NodeKind.TRAIT:
            item = self._emit(node, scope, public=inherited, eligible=eligible)
            body = _body(node)
            if body is not None:
                self._walk(
                    group_inner(body),
                    _Scope(
                        path=(*scope.path, item.name),
                        public=inherited,
                        eligible=eligible,
                        depth=scope.depth + 1,
                    ),
                )
        elif kind is NodeKind.IMPL:
            body = _body(node)
            if body is not None:
                self._walk(
                    group_inner(body),
                    _Scope(
                        path=(*scope.path, _impl_segment(node)),
                        public=scope.public,
                        eligible=eligible,
                        depth=scope.depth,
                    ),
                )
        elif kind is NodeKind.EXTERN_BLOCK:
            body = _body(node)
            if body is not None:
                self._walk(group_inner(body), replace(scope, eligible=eligible))
        elif kind is NodeKind.MACRO:
            exported = any(_attribute_path(attr)[0] == "macro_export" for attr in _attributes(node))
            self._emit(node, scope, public=inherited or exported, eligible=eligible)
        elif kind in DOCUMENTABLE and node.name != "_":
            self._emit(node, scope, public=inherited, eligible=eligible)

    def _fields(
        self,
        owner: SyntaxNode,
        owner_item: Item,
        scope: _Scope,
        *,
        eligible: bool,
        inherit: bool,
        depth: int | None = None,
    ) -> None:
        for field_node in _member_nodes(owner, NodeKind.FIELD):
            field_eligible = eligible and not any(is_gate(a) for a in _attributes(field_node))
            # A private owner makes every field private, whatever its own marker says.
            public = owner_item.is_public and (_is_public(field_node) or inherit)
            self._emit(
                field_node,
                scope,
                public=public,
                eligible=field_eligible,
                item_id=f"{owner_item.id}.{field_node.name}",
                depth=scope.depth + 1 if depth is None else depth,
            )

    # -- item construction --------------------------------------------

    def _unique(self, item_id: str) -> str:
        self._seen[item_id] += 1
        count = self._seen[item_id]
        return item_id if count == 1 else f"{item_id}#{count}"

    def _emit(
        self,
        node: SyntaxNode,
        scope: _Scope,
        *,
        public: bool,
        eligible: bool,
        item_id: str | None = None,
        depth: int | None = None,
    ) -> Item:
        name = node.name or ""
        if item_id is None:
            item_id = "::".join((*scope.path, name))
        pieces = self._outer_doc(node)
        if node.kind is NodeKind.MODULE:
            body = _body(node)
            if body is not None:
                pieces += self._inner_doc(group_inner(body), body.children[-1])
        field_names: list[str] = []
        if node.kind in (NodeKind.STRUCT, NodeKind.UNION, NodeKind.VARIANT):
            field_names = [f.name or "" for f in _member_nodes(node, NodeKind.FIELD)]
        elif node.kind is NodeKind.ENUM:
            field_names = [v.name or "" for v in _member_nodes(node, NodeKind.VARIANT)]
        item = Item(
            id=self._unique(item_id),
            kind=node.kind,
            name=name,
            node=node,
            anchor=_anchor(node),
            signature=signature_of(node),
            is_public=public,
            doc_eligible=eligible,
            is_unsafe=_is_unsafe(node),
            field_names=field_names,
            existing_doc=self._doc_text(pieces),
            doc_pieces=tuple(pieces),
            depth=scope.depth if depth is None else depth,
        )
        self._items.append(item)
        return item

    def _emit_root(
        self, root: SyntaxNode, elements: Sequence[Element], eof: Token, eligible: bool
    ) -> None:
        first = root.first_token()
        assert first is not None
        pieces = self._inner_doc(elements, eof)
        self._items.append(
            Item(
                id=ROOT_ID,
                kind=NodeKind.MODULE,
                name=ROOT_ID,
                node=root,
                anchor=first,
                signature="",
                is_public=True,
                doc_eligible=eligible,
                existing_doc=self._doc_text(pieces),
                doc_pieces=tuple(pieces),
                doc_style=DocStyle.INNER,
            )
        )
        self._seen[ROOT_ID] += 1

    def _doc_text(self, pieces: Sequence[DocPiece]) -> str | None:
        if not pieces:
            return None
        return "\n".join(self._source[piece.start : piece.end] for piece in pieces)

    def _outer_doc(self, node: SyntaxNode) -> list[DocPiece]:
        """Doc comments and ``#[doc = ...]`` attributes ahead of the anchor."""
        pieces: list[DocPiece] = []
        for child in node.children:
            is_attribute = isinstance(child, SyntaxNode) and child.kind is NodeKind.ATTRIBUTE
            token = child if isinstance(child, Token) else child.first_token()
            if token is not None:
                pieces.extend(
                    DocPiece(trivia.start, trivia.end, DocStyle.OUTER)
                    for trivia in token.leading
                    if trivia.kind is TokenKind.DOC_COMMENT
                )
            if not is_attribute:
                break
            assert isinstance(child, SyntaxNode)
            if is_doc_attribute(child):
                start, end = _attribute_span(child)
                pieces.append(DocPiece(start, end, DocStyle.OUTER))
        return pieces

    def _inner_doc(self, elements: Sequence[Element], closer: Token) -> list[DocPiece]:
        """Inner doc comments and ``#![doc = ...]`` at the top of a module body."""
        pieces: list[DocPiece] = []
        for element in (*elements, closer):
            token = element if isinstance(element, Token) else element.first_token()
            if token is not None:
                pieces.extend(
                    DocPiece(trivia.start, trivia.end, DocStyle.INNER)
                    for trivia in token.leading
                    if trivia.kind is TokenKind.INNER_DOC_COMMENT
                )
            if not (
                isinstance(element, SyntaxNode)
                and element.kind is NodeKind.ATTRIBUTE
                and element.name == "!"
            ):
                break
            if is_doc_attribute(element):
                start, end = _attribute_span(element)
                pieces.append(DocPiece(start, end, DocStyle.INNER))
        return pieces

    @staticmethod
    def _gated_inner(elements: Sequence[Element]) -> bool:
        for element in elements:
            if not (
                isinstance(element, SyntaxNode)
                and element.kind is NodeKind.ATTRIBUTE
                and element.name == "!"
            ):
                return False
            if is_gate(element):
                return True
        return False


def extract_items(root: SyntaxNode, *, include_root: bool = False) -> list[Item]:
    """Return the documentable items of ``root`` in document order."""
    return ItemExtractor(include_root=include_root).extract(root)
