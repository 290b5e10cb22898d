"""Custom exceptions for rustscribe."""

from __future__ import annotations


class RustscribeError(Exception):
    """Base exception for all rustscribe errors."""

    stage = "unknown"


class ParseError(RustscribeError):
    """Unrecoverable syntax error; aborts the file."""

    stage = "parse"

    def __init__(self, offset: int, expected: str, found: str) -> None:
        self.offset = offset
        self.expected = expected
        self.found = found
        super().__init__(f"at offset {offset}: expected {expected}, found {found}")


class InferenceFailure(RustscribeError):
    """The inference adapter could not produce documentation for one item."""

    stage = "inference"

    def __init__(self, item_id: str, reason: str) -> None:
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"{item_id}: {reason}")


class ReassemblyError(RustscribeError):
    """Two planned insertions resolved to overlapping ranges.

    Plans are built so this never happens; seeing it means the planner is wrong.
    """

    stage = "reassembly"

    def __init__(self, conflicting_anchors: list[str]) -> None:
        self.conflicting_anchors = conflicting_anchors
        super().__init__("conflicting insertion anchors: " + ", ".join(conflicting_anchors))


class ValidationError(RustscribeError):
    """Reassembled source no longer matches the original item structure."""

    stage = "validation"

    def __init__(self, mismatch: str) -> None:
        self.mismatch = mismatch
        super().__init__(mismatch)
