"""Doc placement decisions.

For every extracted item the planner chooses one action: insert a fresh doc
block, merge generated text into a stub-like existing doc, or skip the item.
Substantive human-written documentation is never touched.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping

from rustscribe.config import AppConfig
from rustscribe.errors import InferenceFailure
from rustscribe.models import (
    Action,
    DocBlock,
    DocSection,
    Insert,
    InsertionPlan,
    Item,
    MergeWith,
    Skip,
)
from rustscribe.utils.text import doc_content_lines, doc_text, normalize_sentence

LOGGER = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(
    r"^(?:(?:todo|fixme|xxx|tbd)\b.*|placeholder\.?|add documentation\.?|document me\.?|\.\.\.+|-+)$",
    re.IGNORECASE,
)
_HEADING = re.compile(r"^#+\s*(?P<title>\S.*?)\s*$")

SKIP_PRIVATE = "private"
SKIP_HAS_DOC = "has_doc"
SKIP_NOT_ELIGIBLE = "not_eligible"
SKIP_INFERENCE_FAILED = "inference_failed"
SKIP_UP_TO_DATE = "up_to_date"


def is_stub(existing: str, min_length: int) -> bool:
    """True when ``existing`` is too short or holds nothing but placeholders."""
    text = doc_text(existing)
    if len(text) < min_length:
        return True
    lines = [line for line in text.splitlines() if line.strip()]
    return all(_PLACEHOLDER.match(line.strip()) for line in lines)


def existing_headings(existing: str) -> set[str]:
    headings = set()
    for line in doc_content_lines(existing):
        match = _HEADING.match(line.strip())
        if match:
            headings.add(normalize_sentence(match.group("title")))
    return headings


class PlacementEngine:
    """Builds the insertion plan for one file."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()

    def triage(self, item: Item) -> Skip | None:
        """Return a ``Skip`` when ``item`` needs no inference, ``None`` otherwise."""
        if not item.doc_eligible:
            return Skip(SKIP_NOT_ELIGIBLE)
        if not item.is_public and not self.config.document_private:
            return Skip(SKIP_PRIVATE)
        if item.existing_doc is not None and not is_stub(
            item.existing_doc, self.config.min_existing_doc_len
        ):
            return Skip(SKIP_HAS_DOC)
        return None

    def decide(self, item: Item, doc: DocBlock | InferenceFailure) -> Action:
        triaged = self.triage(item)
        if triaged is not None:
            return triaged
        if isinstance(doc, InferenceFailure):
            return Skip(SKIP_INFERENCE_FAILED)
        if item.existing_doc is None:
            return Insert(doc)
        return self._merge(item, item.existing_doc, doc)

    def _merge(self, item: Item, existing: str, doc: DocBlock) -> Action:
        lines = [line for line in doc_content_lines(existing) if line.strip()]
        first = normalize_sentence(lines[0]) if lines else ""
        summary = list(doc.summary)
        if summary and normalize_sentence(summary[0]) == first:
            summary = []
        present = existing_headings(existing)
        sections = [
            DocSection(heading=section.heading, lines=list(section.lines))
            for section in doc.sections
            if normalize_sentence(section.heading) not in present
        ]
        if not summary and not sections:
            return Skip(SKIP_UP_TO_DATE)
        return MergeWith(existing, DocBlock(item_id=item.id, summary=summary, sections=sections))

    def plan(
        self,
        items: list[Item],
        docs: Mapping[str, DocBlock | InferenceFailure],
    ) -> InsertionPlan:
        """Combine triage results and inference outcomes into one plan."""
        plan = InsertionPlan()
        for item in items:
            outcome = docs.get(item.id)
            if outcome is None:
                action = self.triage(item) or Skip(SKIP_INFERENCE_FAILED)
            else:
                action = self.decide(item, outcome)
            if isinstance(action, Skip) and action.reason == SKIP_INFERENCE_FAILED:
                LOGGER.info("No documentation generated for %s", item.id)
            plan.add(item.id, action)
        LOGGER.debug(
            "Planned %d insertions out of %d items", len(plan.pending()), len(plan.actions)
        )
        return plan
