"""Tests for splicing doc blocks into source text."""

from __future__ import annotations

from dataclasses import replace

import pytest

from rustscribe.errors import ReassemblyError
from rustscribe.models import DocBlock, DocSection, Insert, InsertionPlan, MergeWith, Skip
from rustscribe.synthesis.reassembler import reassemble, render_lines
from rustscribe.syntax.items import extract_items
from rustscribe.syntax.parser import parse


def _apply(text: str, actions: dict, *, include_root: bool = False) -> str:
    root = parse(text)
    items = extract_items(root, include_root=include_root)
    plan = InsertionPlan()
    for item_id, action in actions.items():
        plan.add(item_id, action)
    return reassemble(root, items, plan)


def _insert(item_id: str, *summary: str, sections=None) -> Insert:
    return Insert(DocBlock(item_id=item_id, summary=list(summary), sections=list(sections or [])))


ERRORS = DocSection(heading="Errors", lines=["Fails."])
EXAMPLES = DocSection(heading="Examples", lines=["m::f();"])


class TestRenderLines:
    """Tests for render_lines."""

    def test_summary_and_sections(self) -> None:
        """Sections are separated by blank lines."""
        doc = DocBlock("f", ["Summary."], [ERRORS])
        assert render_lines(doc) == ["Summary.", "", "# Errors", "", "Fails."]

    def test_separator(self) -> None:
        """A separator adds a trailing blank line."""
        assert render_lines(DocBlock("f", ["Summary."]), separator=True) == ["Summary.", ""]

    def test_sections_only(self) -> None:
        """Without a summary the block starts at the heading."""
        assert render_lines(DocBlock("f", [], [ERRORS])) == ["# Errors", "", "Fails."]


class TestInsert:
    """Fresh doc blocks."""

    def test_empty_plan_is_identity(self) -> None:
        """Nothing to do leaves the text unchanged."""
        text = "pub fn f() {}\n"
        assert _apply(text, {"f": Skip("has_doc")}) == text

    def test_top_level(self) -> None:
        """The block goes on the line above the item."""
        text = "pub fn f() {}\n"
        assert _apply(text, {"f": _insert("f", "Does f.")}) == "/// Does f.\npub fn f() {}\n"

    def test_sections_rendered(self) -> None:
        """Sections become headed comment paragraphs."""
        text = "pub fn f() {}"
        expected = "/// Summary.\n///\n/// # Errors\n///\n/// Fails.\npub fn f() {}"
        assert _apply(text, {"f": _insert("f", "Summary.", sections=[ERRORS])}) == expected

    def test_indentation_matches(self) -> None:
        """Nested items keep their indentation."""
        text = "impl Foo {\n    pub fn bar(&self) {}\n}\n"
        expected = "impl Foo {\n    /// Does bar.\n    pub fn bar(&self) {}\n}\n"
        assert _apply(text, {"Foo::bar": _insert("Foo::bar", "Does bar.")}) == expected

    def test_after_attributes(self) -> None:
        """The block sits between attributes and the item."""
        text = "#[inline]\npub fn f() {}\n"
        assert _apply(text, {"f": _insert("f", "Doc.")}) == "#[inline]\n/// Doc.\npub fn f() {}\n"

    def test_anchor_mid_line(self) -> None:
        """Code ahead of the anchor is split onto its own line."""
        text = "pub struct P { pub x: u8 }"
        expected = "pub struct P {\n /// The x.\n pub x: u8 }"
        assert _apply(text, {"P.x": _insert("P.x", "The x.")}) == expected

    def test_anchor_after_attribute_on_same_line(self) -> None:
        """No line is left ending in spaces."""
        text = "    #[derive(Debug)] pub struct S;\n"
        expected = "    #[derive(Debug)]\n     /// Doc.\n     pub struct S;\n"
        assert _apply(text, {"S": _insert("S", "Doc.")}) == expected

    def test_crlf_preserved(self) -> None:
        """Inserted lines use the file's newline style."""
        text = "pub fn f() {}\r\npub fn g() {}\r\n"
        expected = "pub fn f() {}\r\n/// G.\r\npub fn g() {}\r\n"
        assert _apply(text, {"g": _insert("g", "G.")}) == expected

    def test_multiple_items(self) -> None:
        """Several insertions apply together."""
        text = "pub struct S {\n    pub a: u8,\n}\n"
        expected = "/// S.\npub struct S {\n    /// A.\n    pub a: u8,\n}\n"
        actions = {"S": _insert("S", "S."), "S.a": _insert("S.a", "A.")}
        assert _apply(text, actions) == expected

    def test_root_inner_doc(self) -> None:
        """File docs go above the first item's outer docs."""
        text = "/// Item doc text is long enough.\npub fn f() {}\n"
        expected = "//! Crate.\n/// Item doc text is long enough.\npub fn f() {}\n"
        assert _apply(text, {"crate": _insert("crate", "Crate.")}, include_root=True) == expected

    def test_root_and_first_item_share_offset(self) -> None:
        """File docs and the first item's docs may touch."""
        text = "pub fn f() {}\n"
        actions = {"crate": _insert("crate", "Crate."), "f": _insert("f", "F.")}
        assert _apply(text, actions, include_root=True) == "//! Crate.\n/// F.\npub fn f() {}\n"


class TestMerge:
    """Extending stub docs."""

    def test_prepend_and_append(self) -> None:
        """Summaries go above the stub and sections below it."""
        text = "/// Short.\npub fn f() {}\n"
        action = MergeWith("/// Short.", DocBlock("f", ["Full summary."], [ERRORS]))
        expected = (
            "/// Full summary.\n"
            "///\n"
            "/// Short.\n"
            "///\n"
            "/// # Errors\n"
            "///\n"
            "/// Fails.\n"
            "pub fn f() {}\n"
        )
        assert _apply(text, {"f": action}) == expected

    def test_append_only(self) -> None:
        """Without a new summary only sections are added."""
        text = "    /// Short.\n    pub fn f() {}\n"
        action = MergeWith("/// Short.", DocBlock("f", [], [ERRORS]))
        expected = "    /// Short.\n    ///\n    /// # Errors\n    ///\n    /// Fails.\n    pub fn f() {}\n"
        assert _apply(text, {"f": action}) == expected

    def test_existing_lines_kept(self) -> None:
        """Merging never removes existing text."""
        text = "/// TODO\n#[inline]\npub fn f() {}\n"
        action = MergeWith("/// TODO", DocBlock("f", ["Real docs."]))
        result = _apply(text, {"f": action})
        assert result == "/// Real docs.\n///\n/// TODO\n#[inline]\npub fn f() {}\n"

    def test_module_stub_followed_by_item(self) -> None:
        """Sections appended to a module doc do not collide with its first item."""
        text = "pub mod m {\n    //! Stub.\n    pub fn f() {}\n}\n"
        actions = {
            "m": MergeWith("//! Stub.", DocBlock("m", [], [EXAMPLES])),
            "m::f": _insert("m::f", "F."),
        }
        expected = (
            "pub mod m {\n"
            "    //! Stub.\n"
            "    //!\n"
            "    //! # Examples\n"
            "    //!\n"
            "    //! m::f();\n"
            "    /// F.\n"
            "    pub fn f() {}\n"
            "}\n"
        )
        assert _apply(text, actions) == expected

    def test_merge_without_doc_fails(self) -> None:
        """Merging into an undocumented item is a planning defect."""
        with pytest.raises(ReassemblyError):
            _apply("pub fn f() {}\n", {"f": MergeWith("", DocBlock("f", ["x"]))})


class TestConflicts:
    """Overlapping insertions are rejected."""

    def test_same_anchor_rejected(self) -> None:
        """Two items resolving to the same offset conflict."""
        root = parse("pub fn f() {}\n")
        items = extract_items(root)
        twin = replace(items[0], id="twin")
        plan = InsertionPlan()
        plan.add("f", _insert("f", "One."))
        plan.add("twin", _insert("twin", "Two."))
        with pytest.raises(ReassemblyError) as excinfo:
            reassemble(root, [*items, twin], plan)
        assert excinfo.value.conflicting_anchors == ["f", "twin"]
        assert excinfo.value.stage == "reassembly"
