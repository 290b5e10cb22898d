"""Core rustscribe data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union


class TokenKind(str, Enum):
    IDENT = "ident"
    LIFETIME = "lifetime"
    PUNCT = "punct"
    LITERAL = "literal"
    WHITESPACE = "whitespace"
    NEWLINE = "newline"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    DOC_COMMENT = "doc_comment"
    INNER_DOC_COMMENT = "inner_doc_comment"
    EOF = "eof"

    @property
    def is_trivia(self) -> bool:
        return self in _TRIVIA_KINDS

    @property
    def is_comment(self) -> bool:
        return self in _COMMENT_KINDS


_COMMENT_KINDS = frozenset(
    {
        TokenKind.LINE_COMMENT,
        TokenKind.BLOCK_COMMENT,
        TokenKind.DOC_COMMENT,
        TokenKind.INNER_DOC_COMMENT,
    }
)
_TRIVIA_KINDS = _COMMENT_KINDS | {TokenKind.WHITESPACE, TokenKind.NEWLINE}


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical unit with its source span and the trivia that precedes it."""

    kind: TokenKind
    text: str
    start: int
    end: int
    leading: tuple["Token", ...] = ()

    @property
    def full_start(self) -> int:
        return self.leading[0].start if self.leading else self.start

    def full_text(self) -> str:
        return "".join(t.text for t in self.leading) + self.text

    def is_punct(self, value: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == value

    def is_ident(self, value: str | None = None) -> bool:
        if self.kind is not TokenKind.IDENT:
            return False
        return value is None or self.text == value


class NodeKind(str, Enum):
    SOURCE_FILE = "source_file"
    MODULE = "module"
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    TRAIT = "trait"
    FUNCTION = "function"
    FIELD = "field"
    VARIANT = "variant"
    IMPL = "impl"
    CONST = "const"
    STATIC = "static"
    TYPE_ALIAS = "type_alias"
    MACRO = "macro"
    USE = "use"
    EXTERN_CRATE = "extern_crate"
    EXTERN_BLOCK = "extern_block"
    MACRO_CALL = "macro_call"
    ATTRIBUTE = "attribute"
    VISIBILITY = "visibility"
    GROUP = "group"


Element = Union[Token, "SyntaxNode"]


@dataclass(frozen=True, slots=True)
class SyntaxNode:
    """CST node owning an ordered run of tokens and child nodes."""

    kind: NodeKind
    children: tuple[Element, ...]
    name: str | None = None

    def tokens(self) -> Iterator[Token]:
        """Yield significant tokens in document order."""
        for child in self.children:
            if isinstance(child, Token):
                yield child
            else:
                yield from child.tokens()

    def first_token(self) -> Token | None:
        return next(self.tokens(), None)

    def nodes(self) -> Iterator["SyntaxNode"]:
        for child in self.children:
            if isinstance(child, SyntaxNode):
                yield child

    def text(self) -> str:
        return "".join(token.full_text() for token in self.tokens())


class DocStyle(str, Enum):
    OUTER = "///"
    INNER = "//!"


@dataclass(frozen=True, slots=True)
class DocPiece:
    """Source range of one existing doc comment or `doc` attribute."""

    start: int
    end: int
    style: DocStyle


@dataclass(slots=True)
class Item:
    """Semantic view over one documentable syntax node."""

    id: str
    kind: NodeKind
    name: str
    node: SyntaxNode
    anchor: Token
    signature: str
    is_public: bool
    doc_eligible: bool = True
    is_unsafe: bool = False
    field_names: list[str] = field(default_factory=list)
    existing_doc: str | None = None
    doc_pieces: tuple["DocPiece", ...] = ()
    doc_style: DocStyle = DocStyle.OUTER
    depth: int = 0

    @property
    def has_doc(self) -> bool:
        return self.existing_doc is not None


@dataclass(slots=True)
class DocSection:
    heading: str
    lines: list[str]


@dataclass(slots=True)
class DocBlock:
    """Synthesized documentation for one item."""

    item_id: str
    summary: list[str]
    sections: list[DocSection] = field(default_factory=list)

    def headings(self) -> list[str]:
        return [section.heading for section in self.sections]


@dataclass(frozen=True, slots=True)
class Insert:
    doc: DocBlock


@dataclass(frozen=True, slots=True)
class MergeWith:
    """Extend a stub-like doc; ``doc`` only carries the lines to add."""

    existing: str
    doc: DocBlock


@dataclass(frozen=True, slots=True)
class Skip:
    reason: str


Action = Union[Insert, MergeWith, Skip]


@dataclass(slots=True)
class InsertionPlan:
    """Ordered mapping from item id to the action chosen for it."""

    actions: dict[str, Action] = field(default_factory=dict)

    def add(self, item_id: str, action: Action) -> None:
        if item_id in self.actions:
            raise ValueError(f"Duplicate plan entry for {item_id}")
        self.actions[item_id] = action

    def pending(self) -> dict[str, Action]:
        return {
            key: action
            for key, action in self.actions.items()
            if not isinstance(action, Skip)
        }

    def skipped(self, reason: str | None = None) -> list[str]:
        return [
            key
            for key, action in self.actions.items()
            if isinstance(action, Skip) and (reason is None or action.reason == reason)
        ]

    @property
    def is_empty(self) -> bool:
        return not self.pending()
