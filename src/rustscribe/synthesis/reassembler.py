"""Splices planned doc blocks back into the original token stream."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from rustscribe.errors import ReassemblyError
from rustscribe.models import (
    DocBlock,
    DocStyle,
    Insert,
    InsertionPlan,
    Item,
    MergeWith,
    SyntaxNode,
    TokenKind,
)
from rustscribe.syntax.items import ROOT_ID
from rustscribe.utils.text import detect_newline, indentation, line_start, starts_line

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Splice:
    item_id: str
    offset: int
    text: str


def render_lines(doc: DocBlock, *, separator: bool = False) -> list[str]:
    """Flatten ``doc`` into comment content lines.

    Sections are preceded by a blank line and a ``# Heading`` line. With
    ``separator`` a trailing blank line keeps the block apart from the existing
    text that follows it.
    """
    lines: list[str] = []
    for line in doc.summary:
        lines.extend(line.splitlines() or [""])
    for section in doc.sections:
        if lines:
            lines.append("")
        lines.extend([f"# {section.heading}", ""])
        for line in section.lines:
            lines.extend(line.splitlines() or [""])
    if separator and lines:
        lines.append("")
    return lines


def _comment(style: DocStyle, line: str) -> str:
    line = line.rstrip()
    return f"{style.value} {line}" if line else style.value


class Reassembler:
    """Turns an insertion plan into the final source text."""

    def __init__(self, items: Sequence[Item]) -> None:
        self.items = {item.id: item for item in items}

    def apply(self, root: SyntaxNode, plan: InsertionPlan) -> str:
        source = root.text()
        newline = detect_newline(source)
        splices: list[Splice] = []
        for item_id, action in plan.pending().items():
            item = self.items[item_id]
            if isinstance(action, Insert):
                splices.append(self._insert(source, newline, item, action))
            elif isinstance(action, MergeWith):
                splices.extend(self._merge(source, newline, item, action))
        self._check_conflicts(splices)
        return self._replay(root, splices)

    # -- splice construction --------------------------------------------

    def _before(
        self, source: str, newline: str, item: Item, offset: int, lines: list[str], style: DocStyle
    ) -> Splice:
        indent = indentation(source, offset)
        if starts_line(source, offset):
            body = "".join(indent + _comment(style, line) + newline for line in lines)
            return Splice(item.id, line_start(source, offset), body)
        # Code precedes the anchor on its line: break the line ahead of the
        # whitespace run so that run becomes the anchor's extra indentation.
        cut = offset
        while cut > line_start(source, offset) and source[cut - 1] in " \t":
            cut -= 1
        gap = source[cut:offset]
        body = "".join(indent + gap + _comment(style, line) + newline for line in lines)
        return Splice(item.id, cut, newline + body + indent)

    def _after(
        self, source: str, newline: str, item: Item, start: int, end: int, lines: list[str], style: DocStyle
    ) -> Splice:
        # Appended lines start right after the last doc piece, inside the item.
        indent = indentation(source, start)
        line_end = source.find("\n", end)
        rest = source[end:] if line_end == -1 else source[end:line_end]
        body = "".join(newline + indent + _comment(style, line) for line in lines)
        if rest.strip():
            body += newline + indent
        return Splice(item.id, end, body)

    def _insert(self, source: str, newline: str, item: Item, action: Insert) -> Splice:
        offset = item.anchor.start
        if item.doc_style is DocStyle.INNER:
            # Inner docs must precede any outer doc comment of the first item.
            for trivia in item.anchor.leading:
                if trivia.kind is TokenKind.DOC_COMMENT:
                    offset = trivia.start
                    break
        return self._before(source, newline, item, offset, render_lines(action.doc), item.doc_style)

    def _merge(self, source: str, newline: str, item: Item, action: MergeWith) -> list[Splice]:
        if not item.doc_pieces:
            raise ReassemblyError([item.id])
        first, last = item.doc_pieces[0], item.doc_pieces[-1]
        splices = []
        if action.doc.summary:
            prefix = render_lines(DocBlock(item.id, action.doc.summary), separator=True)
            splices.append(self._before(source, newline, item, first.start, prefix, first.style))
        if action.doc.sections:
            suffix = [""] + render_lines(DocBlock(item.id, [], action.doc.sections))
            splices.append(
                self._after(source, newline, item, last.start, last.end, suffix, last.style)
            )
        return splices

    # -- checks and output ----------------------------------------------

    @staticmethod
    def _check_conflicts(splices: Iterable[Splice]) -> None:
        ranges: dict[str, tuple[int, int]] = {}
        for splice in splices:
            low, high = ranges.get(splice.item_id, (splice.offset, splice.offset))
            ranges[splice.item_id] = (min(low, splice.offset), max(high, splice.offset))
        ordered = sorted(ranges.items(), key=lambda entry: entry[1])
        conflicts: list[str] = []
        reach_id, reach = None, -1
        for item_id, (low, high) in ordered:
            if reach_id is not None and low <= reach:
                touching = low == reach and ROOT_ID in (reach_id, item_id)
                if not touching:
                    conflicts.extend([reach_id, item_id])
            if high >= reach:
                reach_id, reach = item_id, high
        if conflicts:
            LOGGER.error("Overlapping insertions: %s", ", ".join(conflicts))
            raise ReassemblyError(sorted(set(conflicts)))

    @staticmethod
    def _replay(root: SyntaxNode, splices: Sequence[Splice]) -> str:
        pending: dict[int, list[Splice]] = defaultdict(list)
        for splice in splices:
            pending[splice.offset].append(splice)
        for offset in pending:
            # File-level inner docs go first at a shared offset.
            pending[offset].sort(key=lambda splice: splice.item_id != ROOT_ID)

        out: list[str] = []
        for token in root.tokens():
            for piece in (*token.leading, token):
                for splice in pending.pop(piece.start, ()):
                    out.append(splice.text)
                out.append(piece.text)
        if pending:
            stray = sorted({splice.item_id for group in pending.values() for splice in group})
            raise ReassemblyError(stray)
        return "".join(out)


def reassemble(root: SyntaxNode, items: Sequence[Item], plan: InsertionPlan) -> str:
    """Apply ``plan`` to the source held by ``root`` and return the new text."""
    return Reassembler(items).apply(root, plan)
