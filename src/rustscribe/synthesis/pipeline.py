"""Documentation synthesis pipeline."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Coroutine, Sequence, TypeVar

from rustscribe.config import AppConfig
from rustscribe.errors import InferenceFailure, ReassemblyError, RustscribeError, ValidationError
from rustscribe.inference.adapter import DocInferenceAdapter, infer_doc_block
from rustscribe.inference.heuristic import HeuristicAdapter
from rustscribe.models import DocBlock, Insert, InsertionPlan, Item, MergeWith
from rustscribe.synthesis.planner import PlacementEngine
from rustscribe.synthesis.reassembler import reassemble
from rustscribe.synthesis.validator import validate
from rustscribe.syntax.items import extract_items
from rustscribe.syntax.parser import parse
from rustscribe.utils.files import compute_sha256, iter_rust_paths, read_source, write_source

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class ErrorReport:
    file: str
    stage: str
    detail: str


@dataclass(slots=True)
class SynthesisResult:
    """Outcome for one source text: the text to keep plus how it was obtained."""

    original: str
    text: str
    plan: InsertionPlan = field(default_factory=InsertionPlan)
    items: list[Item] = field(default_factory=list)
    error: ErrorReport | None = None
    path: Path | None = None

    @property
    def changed(self) -> bool:
        return self.text != self.original

    @property
    def inserted(self) -> int:
        return sum(isinstance(action, Insert) for action in self.plan.actions.values())

    @property
    def merged(self) -> int:
        return sum(isinstance(action, MergeWith) for action in self.plan.actions.values())


@dataclass(slots=True)
class SynthesisStats:
    changed: int = 0
    unchanged: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "changed":
            self.changed += 1
        elif status == "unchanged":
            self.unchanged += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


def _status(result: SynthesisResult) -> str:
    if result.error is not None:
        return "failed"
    return "changed" if result.changed else "unchanged"


class DocSynthesizer:
    """Coordinates parsing, inference, placement, reassembly and validation."""

    def __init__(
        self,
        adapter: DocInferenceAdapter | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.adapter = adapter or HeuristicAdapter()
        self.config = config or AppConfig()
        self.engine = PlacementEngine(self.config)
        self._executor: ThreadPoolExecutor | None = None

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` with a worker pool for synchronous adapters.

        The pool is released without waiting, so a timed-out adapter call that
        is still running never holds up the caller.
        """
        executor = ThreadPoolExecutor(thread_name_prefix="rustscribe-infer")
        self._executor = executor
        try:
            return asyncio.run(coro)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    async def _infer_all(self, items: Sequence[Item]) -> dict[str, DocBlock | InferenceFailure]:
        semaphore = asyncio.Semaphore(self.config.inference_concurrency)

        async def infer_one(item: Item) -> tuple[str, DocBlock | InferenceFailure]:
            async with semaphore:
                try:
                    block = await infer_doc_block(
                        self.adapter,
                        item,
                        timeout=self.config.inference_timeout,
                        executor=self._executor,
                    )
                except InferenceFailure as exc:
                    LOGGER.warning("Inference failed for %s: %s", item.id, exc.reason)
                    return item.id, exc
                return item.id, block

        results = await asyncio.gather(*(infer_one(item) for item in items))
        return dict(results)

    async def synthesize_async(self, source: str, *, path: Path | None = None) -> SynthesisResult:
        """Document ``source`` and return the result.

        Raises:
            ParseError: if ``source`` cannot be parsed.
            ReassemblyError: if the plan contains overlapping insertions.
        """
        label = str(path) if path is not None else "<text>"
        root = parse(source)
        items = extract_items(root, include_root=self.config.document_module_root)
        targets = [item for item in items if self.engine.triage(item) is None]
        LOGGER.debug("%s: %d items, %d need documentation", label, len(items), len(targets))

        docs = await self._infer_all(targets)
        plan = self.engine.plan(items, docs)
        if plan.is_empty:
            return SynthesisResult(source, source, plan, items, path=path)

        text = reassemble(root, items, plan)
        try:
            validate(text, items, include_root=self.config.document_module_root)
        except ValidationError as exc:
            LOGGER.warning("%s: validation failed, keeping original text: %s", label, exc.mismatch)
            report = ErrorReport(label, exc.stage, exc.mismatch)
            return SynthesisResult(source, source, plan, items, error=report, path=path)
        return SynthesisResult(source, text, plan, items, path=path)

    def synthesize(self, source: str, *, path: Path | None = None) -> SynthesisResult:
        """Synchronous wrapper around :meth:`synthesize_async`."""
        return self._run(self.synthesize_async(source, path=path))

    async def _process_file(self, path: Path, *, write: bool) -> SynthesisResult:
        try:
            source = read_source(path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.error("Failed to read %s: %s", path, exc)
            return SynthesisResult("", "", error=ErrorReport(str(path), "read", str(exc)), path=path)

        digest = compute_sha256(source)
        try:
            result = await self.synthesize_async(source, path=path)
        except ReassemblyError as exc:
            LOGGER.error("%s: planning defect: %s", path, exc)
            return SynthesisResult(source, source, error=ErrorReport(str(path), exc.stage, str(exc)), path=path)
        except RustscribeError as exc:
            LOGGER.error("%s: %s failed: %s", path, exc.stage, exc)
            return SynthesisResult(source, source, error=ErrorReport(str(path), exc.stage, str(exc)), path=path)

        if write and result.changed and result.error is None:
            try:
                if compute_sha256(read_source(path)) != digest:
                    raise OSError("file changed on disk while it was being processed")
                write_source(path, result.text)
            except OSError as exc:
                LOGGER.error("Failed to write %s: %s", path, exc)
                result.text = result.original
                result.error = ErrorReport(str(path), "write", str(exc))
        return result

    async def process_async(self, paths: Sequence[Path], *, write: bool = False) -> list[SynthesisResult]:
        """Process every Rust file under ``paths`` concurrently."""
        files = list(iter_rust_paths(paths))
        if not files:
            LOGGER.warning("No Rust files found")
            return []
        return list(await asyncio.gather(*(self._process_file(p, write=write) for p in files)))

    def process(
        self, paths: Sequence[Path], *, write: bool = False
    ) -> tuple[SynthesisStats, list[SynthesisResult]]:
        """Document all Rust files under ``paths``; one failing file never stops the rest."""
        results = self._run(self.process_async(paths, write=write))
        stats = SynthesisStats()
        for result in results:
            assert result.path is not None
            stats.increment(_status(result), result.path)
        return stats, results
