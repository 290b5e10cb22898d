"""Tests for the structural parser."""

from __future__ import annotations

import pytest

from rustscribe.errors import ParseError
from rustscribe.models import NodeKind, SyntaxNode
from rustscribe.syntax.parser import build_token_trees, group_inner, is_group, parse
from rustscribe.syntax.lexer import tokenize


KITCHEN_SINK = """\
#![deny(missing_docs)]
//! Top level docs.

extern crate alloc;
use std::fmt::{self, Display};

pub mod net {
    pub const PORT: u16 = 53;
    pub static mut COUNTER: u32 = 0;
    pub type Res<T> = Result<T, Error>;
}

#[derive(Debug)]
pub struct Header {
    pub id: u16,
    flags: HashMap<String, Vec<u8>>,
}

pub struct Pair(pub u32, String);

pub union Bits { int: u32, float: f32 }

pub enum Kind {
    A,
    B(u8, u16),
    C { code: u8 },
    D = 1 << 2,
}

pub unsafe trait Codec: Sized {
    type Output;
    const SIZE: usize;
    fn encode(&self) -> Vec<u8>;
    fn decode(bytes: &[u8]) -> Option<Self> { None }
}

impl Display for Header {
    fn fmt(&self, f: &mut fmt::Formatter<'_>) -> fmt::Result {
        write!(f, "{}", self.id)
    }
}

pub const unsafe fn raw() {}
pub(crate) async fn fetch() {}
pub extern "C" fn callback() {}

extern "C" {
    fn abs(input: i32) -> i32;
}

#[macro_export]
macro_rules! shout {
    ($x:expr) => { $x };
}

lazy_static::lazy_static! {
    static ref TABLE: u8 = 0;
}
"""


def _top(root: SyntaxNode) -> list[SyntaxNode]:
    return [child for child in root.children if isinstance(child, SyntaxNode)]


def _members(node: SyntaxNode, kind: NodeKind) -> list[SyntaxNode]:
    found = []
    for child in node.nodes():
        if child.kind is NodeKind.GROUP:
            found.extend(grand for grand in child.nodes() if grand.kind is kind)
    return found


class TestTokenTrees:
    """Tests for delimiter grouping."""

    def test_groups_nest(self) -> None:
        """Nested delimiters should produce nested GROUP nodes."""
        trees = build_token_trees(tokenize("f(a[1], {b})")[:-1])
        assert len(trees) == 2
        group = trees[1]
        assert is_group(group, "(")
        inner = group_inner(group)
        assert is_group(inner[1], "[")
        assert is_group(inner[-1], "{")

    def test_mismatched_delimiter(self) -> None:
        """A wrong closer should report what was expected."""
        with pytest.raises(ParseError) as excinfo:
            parse("fn f() { (] }")
        assert excinfo.value.offset == 10
        assert excinfo.value.expected == "')'"
        assert excinfo.value.found == "']'"

    def test_unclosed_delimiter(self) -> None:
        """An unclosed brace should fail at end of file."""
        with pytest.raises(ParseError) as excinfo:
            parse("fn f() {")
        assert excinfo.value.expected == "'}'"
        assert excinfo.value.found == "end of file"

    def test_stray_closer(self) -> None:
        """A closer without opener should fail."""
        with pytest.raises(ParseError) as excinfo:
            parse("fn f() {} }")
        assert excinfo.value.found == "'}'"


class TestParse:
    """Tests for item recognition."""

    def test_lossless(self) -> None:
        """The tree text should equal the input."""
        root = parse(KITCHEN_SINK)
        assert root.kind is NodeKind.SOURCE_FILE
        assert root.text() == KITCHEN_SINK

    def test_top_level_kinds(self) -> None:
        """Every top-level item should be recognised."""
        kinds = [node.kind for node in _top(parse(KITCHEN_SINK))]
        assert kinds == [
            NodeKind.ATTRIBUTE,
            NodeKind.EXTERN_CRATE,
            NodeKind.USE,
            NodeKind.MODULE,
            NodeKind.STRUCT,
            NodeKind.STRUCT,
            NodeKind.UNION,
            NodeKind.ENUM,
            NodeKind.TRAIT,
            NodeKind.IMPL,
            NodeKind.FUNCTION,
            NodeKind.FUNCTION,
            NodeKind.FUNCTION,
            NodeKind.EXTERN_BLOCK,
            NodeKind.MACRO,
            NodeKind.MACRO_CALL,
        ]

    def test_module_body_items(self) -> None:
        """Items inside a module body are parsed too."""
        module = _top(parse(KITCHEN_SINK))[3]
        assert module.name == "net"
        kinds = [(node.kind, node.name) for node in _members(module, NodeKind.CONST)]
        assert kinds == [(NodeKind.CONST, "PORT")]
        assert [n.name for n in _members(module, NodeKind.STATIC)] == ["COUNTER"]
        assert [n.name for n in _members(module, NodeKind.TYPE_ALIAS)] == ["Res"]

    def test_struct_fields(self) -> None:
        """Named fields ignore commas nested in generics."""
        header = _top(parse(KITCHEN_SINK))[4]
        assert header.name == "Header"
        assert [f.name for f in _members(header, NodeKind.FIELD)] == ["id", "flags"]

    def test_tuple_fields(self) -> None:
        """Tuple struct fields are numbered."""
        pair = _top(parse(KITCHEN_SINK))[5]
        assert [f.name for f in _members(pair, NodeKind.FIELD)] == ["0", "1"]

    def test_union_fields(self) -> None:
        """Union fields are parsed like struct fields."""
        bits = _top(parse(KITCHEN_SINK))[6]
        assert bits.name == "Bits"
        assert [f.name for f in _members(bits, NodeKind.FIELD)] == ["int", "float"]

    def test_enum_variants(self) -> None:
        """Variants of every shape, including discriminants."""
        kind = _top(parse(KITCHEN_SINK))[7]
        variants = _members(kind, NodeKind.VARIANT)
        assert [v.name for v in variants] == ["A", "B", "C", "D"]
        assert [f.name for f in _members(variants[1], NodeKind.FIELD)] == ["0", "1"]
        assert [f.name for f in _members(variants[2], NodeKind.FIELD)] == ["code"]

    def test_trait_members(self) -> None:
        """Trait bodies hold associated types, consts and functions."""
        codec = _top(parse(KITCHEN_SINK))[8]
        assert codec.name == "Codec"
        assert [n.name for n in _members(codec, NodeKind.FUNCTION)] == ["encode", "decode"]
        assert [n.name for n in _members(codec, NodeKind.TYPE_ALIAS)] == ["Output"]
        assert [n.name for n in _members(codec, NodeKind.CONST)] == ["SIZE"]

    def test_qualified_functions(self) -> None:
        """Qualifiers and ABI strings precede the fn keyword."""
        functions = [n for n in _top(parse(KITCHEN_SINK)) if n.kind is NodeKind.FUNCTION]
        assert [f.name for f in functions] == ["raw", "fetch", "callback"]

    def test_extern_block_members(self) -> None:
        """Foreign functions live inside the extern block."""
        block = _top(parse(KITCHEN_SINK))[13]
        assert [f.name for f in _members(block, NodeKind.FUNCTION)] == ["abs"]

    def test_macro_rules_name(self) -> None:
        """macro_rules! definitions are named."""
        macro = _top(parse(KITCHEN_SINK))[14]
        assert macro.name == "shout"

    def test_generic_bound_with_parentheses(self) -> None:
        """``Fn(u8)`` in generics is not a tuple body."""
        node = _top(parse("struct W<F: Fn(u8) -> u8> { f: F }"))[0]
        assert [f.name for f in _members(node, NodeKind.FIELD)] == ["f"]

    def test_where_clause_with_parentheses(self) -> None:
        """Parentheses in a where clause are not tuple fields."""
        node = _top(parse("struct W<F> where F: Fn(u8) { f: F }"))[0]
        assert [f.name for f in _members(node, NodeKind.FIELD)] == ["f"]

    def test_missing_struct_name(self) -> None:
        """A struct keyword without a name fails."""
        with pytest.raises(ParseError) as excinfo:
            parse("struct { x: u8 }")
        assert excinfo.value.expected == "struct name"

    def test_unknown_item(self) -> None:
        """Stray expressions at item level fail."""
        with pytest.raises(ParseError) as excinfo:
            parse("let x = 1;")
        assert excinfo.value.expected == "item"
        assert excinfo.value.found == "'let'"
