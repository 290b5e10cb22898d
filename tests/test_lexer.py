"""Tests for the lossless lexer."""

from __future__ import annotations

import pytest

from rustscribe.errors import ParseError
from rustscribe.models import TokenKind
from rustscribe.syntax.lexer import iter_all, tokenize


SAMPLE = """\
//! Crate docs.
#![allow(dead_code)]

/// A packet.
#[derive(Debug, Clone)]
pub struct Packet<'a> {
    pub data: &'a [u8], // trailing
    /* block /* nested */ comment */
    flags: u8,
}

impl<'a> Packet<'a> {
    pub fn new(data: &'a [u8]) -> Self {
        let raw = r#"a "quoted" string"#;
        let c = 'x';
        let esc = '\\n';
        let bytes = b"abc";
        let n = 1_000u32 + 0xFF + 1.5e-3 as u32;
        Self { data, flags: 0 }
    }
}
"""


def _significant(text: str) -> list[tuple[TokenKind, str]]:
    return [(token.kind, token.text) for token in tokenize(text)[:-1]]


class TestLossless:
    """Concatenating every token reproduces the input."""

    def test_roundtrip_sample(self) -> None:
        """Should reproduce a realistic source file exactly."""
        tokens = tokenize(SAMPLE)
        assert "".join(token.full_text() for token in tokens) == SAMPLE

    def test_roundtrip_crlf(self) -> None:
        """Should keep CRLF line endings untouched."""
        text = "fn a() {}\r\n\r\n// note\r\nfn b() {}\r\n"
        tokens = tokenize(text)
        assert "".join(token.full_text() for token in tokens) == text

    def test_iter_all_covers_every_character(self) -> None:
        """Trivia and tokens together should tile the input without gaps."""
        position = 0
        for token in iter_all(tokenize(SAMPLE)):
            assert token.start == position
            position = token.end
        assert position == len(SAMPLE)

    def test_empty_input(self) -> None:
        """Should produce only the end-of-file token."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].kind is TokenKind.EOF


class TestTrivia:
    """Whitespace and comments attach to the following token."""

    def test_doc_comment_leads_next_token(self) -> None:
        """A doc comment should be leading trivia of the item keyword."""
        tokens = tokenize("/// doc\nfn f() {}")
        first = tokens[0]
        assert first.text == "fn"
        assert [t.kind for t in first.leading] == [TokenKind.DOC_COMMENT, TokenKind.NEWLINE]
        assert first.leading[0].text == "/// doc"

    def test_trailing_trivia_on_eof(self) -> None:
        """Trivia after the last token should belong to the EOF token."""
        tokens = tokenize("fn\n// end\n")
        eof = tokens[-1]
        assert eof.kind is TokenKind.EOF
        assert [t.text for t in eof.leading] == ["\n", "// end", "\n"]

    def test_crlf_is_one_newline_token(self) -> None:
        """CRLF should lex as a single newline token."""
        tokens = tokenize("fn\r\nx")
        assert [(t.kind, t.text) for t in tokens[1].leading] == [(TokenKind.NEWLINE, "\r\n")]

    def test_full_start(self) -> None:
        """full_start should point at the first leading trivia."""
        tokens = tokenize("  fn")
        assert tokens[0].start == 2
        assert tokens[0].full_start == 0


class TestCommentKinds:
    """Doc comments are told apart from ordinary comments."""

    @pytest.mark.parametrize(
        ("comment", "kind"),
        [
            ("/// outer", TokenKind.DOC_COMMENT),
            ("//// four slashes", TokenKind.LINE_COMMENT),
            ("//! inner", TokenKind.INNER_DOC_COMMENT),
            ("// plain", TokenKind.LINE_COMMENT),
            ("/** block doc */", TokenKind.DOC_COMMENT),
            ("/*** not doc */", TokenKind.BLOCK_COMMENT),
            ("/**/", TokenKind.BLOCK_COMMENT),
            ("/*! inner block */", TokenKind.INNER_DOC_COMMENT),
            ("/* plain */", TokenKind.BLOCK_COMMENT),
        ],
    )
    def test_comment_kind(self, comment: str, kind: TokenKind) -> None:
        """Should classify each comment form."""
        tokens = tokenize(comment + "\nfn")
        assert tokens[0].leading[0].kind is kind
        assert tokens[0].leading[0].text == comment

    def test_nested_block_comment(self) -> None:
        """Nested block comments should form one token."""
        tokens = tokenize("/* a /* b */ c */ fn")
        assert tokens[0].leading[0].text == "/* a /* b */ c */"

    def test_unterminated_block_comment(self) -> None:
        """An unterminated block comment should raise ParseError."""
        with pytest.raises(ParseError) as excinfo:
            tokenize("fn f() {} /* open")
        assert excinfo.value.offset == 10
        assert excinfo.value.expected == "'*/'"


class TestLiterals:
    """Strings, characters and numbers."""

    def test_raw_string_with_quotes(self) -> None:
        """A raw string should swallow inner quotes."""
        assert _significant('r#"a "quoted" b"#') == [(TokenKind.LITERAL, 'r#"a "quoted" b"#')]

    def test_string_with_comment_marker(self) -> None:
        """Comment markers inside strings are not comments."""
        assert _significant('"// not a comment"') == [(TokenKind.LITERAL, '"// not a comment"')]

    def test_escaped_quote(self) -> None:
        """Escaped quotes should not terminate a string."""
        assert _significant('"say \\"hi\\""') == [(TokenKind.LITERAL, '"say \\"hi\\""')]

    def test_char_versus_lifetime(self) -> None:
        """Character literals and lifetimes are distinguished."""
        assert _significant("'a'") == [(TokenKind.LITERAL, "'a'")]
        assert _significant("'a") == [(TokenKind.LIFETIME, "'a")]
        assert _significant("'\\n'") == [(TokenKind.LITERAL, "'\\n'")]
        assert _significant("'static") == [(TokenKind.LIFETIME, "'static")]

    def test_byte_literals(self) -> None:
        """Byte strings and byte characters are single literals."""
        assert _significant("b\"abc\" b'x'") == [
            (TokenKind.LITERAL, 'b"abc"'),
            (TokenKind.LITERAL, "b'x'"),
        ]

    def test_numbers(self) -> None:
        """Numeric literals keep suffixes, exponents and radix prefixes."""
        assert _significant("1_000u32 0xFF 1.5e-3") == [
            (TokenKind.LITERAL, "1_000u32"),
            (TokenKind.LITERAL, "0xFF"),
            (TokenKind.LITERAL, "1.5e-3"),
        ]

    def test_range_is_not_float(self) -> None:
        """``0..10`` should lex as two integers around punctuation."""
        assert [text for _, text in _significant("0..10")] == ["0", ".", ".", "10"]

    def test_unterminated_string(self) -> None:
        """An unterminated string should raise ParseError at its start."""
        with pytest.raises(ParseError) as excinfo:
            tokenize('let s = "abc')
        assert excinfo.value.offset == 8


class TestIdentifiersAndPunctuation:
    """Identifiers, raw identifiers and combined punctuation."""

    def test_combined_punctuation(self) -> None:
        """Paths and arrows should be single punctuation tokens."""
        assert [text for _, text in _significant("a::b -> c => d")] == [
            "a", "::", "b", "->", "c", "=>", "d",
        ]

    def test_raw_identifier(self) -> None:
        """``r#type`` is one identifier."""
        assert _significant("r#type") == [(TokenKind.IDENT, "r#type")]

    def test_identifier_starting_with_prefix_letter(self) -> None:
        """Identifiers beginning with r, b or c are not literals."""
        assert _significant("bar crate raw") == [
            (TokenKind.IDENT, "bar"),
            (TokenKind.IDENT, "crate"),
            (TokenKind.IDENT, "raw"),
        ]

    def test_shebang(self) -> None:
        """A shebang line is trivia."""
        tokens = tokenize("#!/usr/bin/env run\nfn main() {}")
        assert tokens[0].text == "fn"
        assert tokens[0].leading[0].text == "#!/usr/bin/env run"

    def test_byte_order_mark(self) -> None:
        """A leading byte order mark is whitespace trivia."""
        tokens = tokenize("\ufeffpub fn a() {}")
        assert tokens[0].text == "pub"
        assert tokens[0].leading[0].kind is TokenKind.WHITESPACE
        assert tokens[0].leading[0].text == "\ufeff"
        assert tokens[0].full_start == 0

    def test_byte_order_mark_before_shebang(self) -> None:
        """A shebang after the byte order mark is still recognised."""
        tokens = tokenize("\ufeff#!/usr/bin/env run\nfn main() {}")
        assert tokens[0].text == "fn"
        assert [trivia.kind for trivia in tokens[0].leading][:2] == [
            TokenKind.WHITESPACE,
            TokenKind.LINE_COMMENT,
        ]

    def test_inner_attribute_is_not_shebang(self) -> None:
        """``#![...]`` at the top of a file stays code."""
        tokens = tokenize("#![allow(x)]")
        assert tokens[0].text == "#"
