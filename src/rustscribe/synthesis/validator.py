"""Post-insertion validation: the annotated text must describe the same items."""

from __future__ import annotations

import logging
from typing import Sequence

from rustscribe.errors import ParseError, ValidationError
from rustscribe.models import Item
from rustscribe.syntax.items import extract_items
from rustscribe.syntax.parser import parse

LOGGER = logging.getLogger(__name__)

Fingerprint = tuple[str, str, str]


def fingerprint(items: Sequence[Item]) -> list[Fingerprint]:
    return [(item.id, item.kind.value, item.signature) for item in items]


def validate(text: str, expected: Sequence[Item], *, include_root: bool = False) -> None:
    """Re-parse ``text`` and compare its items with ``expected``.

    Raises:
        ValidationError: if the text no longer parses or an item id, kind or
            signature differs.
    """
    try:
        root = parse(text)
    except ParseError as exc:
        raise ValidationError(f"output does not parse: {exc}") from exc

    before = fingerprint(expected)
    after = fingerprint(extract_items(root, include_root=include_root))
    if before == after:
        LOGGER.debug("Validated %d items", len(after))
        return

    missing = [entry for entry in before if entry not in after]
    added = [entry for entry in after if entry not in before]
    if missing or added:
        details = []
        if missing:
            details.append("missing " + ", ".join(f"{i} ({k})" for i, k, _ in missing[:5]))
        if added:
            details.append("unexpected " + ", ".join(f"{i} ({k})" for i, k, _ in added[:5]))
        raise ValidationError("; ".join(details))
    raise ValidationError("item order changed")
