"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Iterator

_SKIPPED_DIRS = {"target"}


def _skipped(path: Path, root: Path) -> bool:
    parts = path.relative_to(root).parts[:-1]
    return any(part in _SKIPPED_DIRS or part.startswith(".") for part in parts)


def iter_rust_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield Rust source paths from input paths, descending into directories.

    Cargo ``target/`` directories and hidden directories are not descended into.
    """
    for item in inputs:
        if item.is_dir():
            for child in sorted(item.rglob("*.rs")):
                if child.is_file() and not _skipped(child, item):
                    yield child
        elif item.is_file() and item.suffix.lower() == ".rs":
            yield item


def read_source(path: Path) -> str:
    """Read UTF-8 source without newline translation."""
    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_source(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)


def compute_sha256(text: str) -> str:
    """Compute SHA256 hash of source text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
