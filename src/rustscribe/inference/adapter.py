"""Doc inference adapter boundary.

An adapter turns a language-neutral description of one item into candidate
documentation. Adapters are external collaborators: the pipeline only sees the
request and response models defined here and treats every failure as a reason
to skip the item, never to abort the file.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from concurrent.futures import Executor
from typing import Any, Mapping, Protocol, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from rustscribe.errors import InferenceFailure
from rustscribe.models import DocBlock, DocSection, Item

LOGGER = logging.getLogger(__name__)


class ItemDescriptor(BaseModel):
    """Request sent to an adapter for a single item."""

    item_kind: str
    name: str
    signature_text: str = ""
    field_names: list[str] = Field(default_factory=list)
    is_unsafe: bool = False
    is_public: bool = False

    @classmethod
    def from_item(cls, item: Item) -> "ItemDescriptor":
        return cls(
            item_kind=item.kind.value,
            name=item.name,
            signature_text=item.signature,
            field_names=list(item.field_names),
            is_unsafe=item.is_unsafe,
            is_public=item.is_public,
        )


class SectionPayload(BaseModel):
    heading: str
    lines: list[str] = Field(default_factory=list)

    @field_validator("heading")
    @classmethod
    def _clean_heading(cls, value: str) -> str:
        heading = value.strip().lstrip("#").strip()
        if not heading:
            raise ValueError("section heading must not be empty")
        return heading


class DocResponse(BaseModel):
    """Adapter response: a summary plus optional headed sections."""

    summary: str
    sections: list[SectionPayload] = Field(default_factory=list)

    @field_validator("summary")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("summary must not be empty")
        return value

    def to_doc_block(self, item_id: str) -> DocBlock:
        summary = [line.rstrip() for line in self.summary.strip().splitlines()]
        sections = [
            DocSection(heading=section.heading, lines=[line.rstrip() for line in section.lines])
            for section in self.sections
        ]
        return DocBlock(item_id=item_id, summary=summary, sections=sections)


AdapterResult = Union[DocResponse, Mapping[str, Any], None]


class DocInferenceAdapter(Protocol):
    """Anything with an ``infer`` method, synchronous or ``async``.

    Returning ``None`` or raising signals that no documentation is available.
    """

    def infer(self, item: ItemDescriptor) -> Any:
        ...


def _is_async(adapter: DocInferenceAdapter) -> bool:
    infer = adapter.infer
    return inspect.iscoroutinefunction(infer) or inspect.iscoroutinefunction(
        getattr(infer, "__call__", None)
    )


async def infer_doc_block(
    adapter: DocInferenceAdapter,
    item: Item,
    *,
    timeout: float,
    executor: Executor | None = None,
) -> DocBlock:
    """Ask ``adapter`` for the doc block of ``item`` within ``timeout`` seconds.

    Synchronous adapters run on ``executor`` (the loop's default executor when
    ``None``). A call that times out keeps its worker thread until it returns.

    Raises:
        InferenceFailure: on timeout, refusal, adapter error or malformed response.
    """
    descriptor = ItemDescriptor.from_item(item)
    try:
        if _is_async(adapter):
            call = adapter.infer(descriptor)
        else:
            loop = asyncio.get_running_loop()
            call = loop.run_in_executor(executor, adapter.infer, descriptor)
        raw: AdapterResult = await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as exc:
        raise InferenceFailure(item.id, "timeout") from exc
    except InferenceFailure:
        raise
    except Exception as exc:
        raise InferenceFailure(item.id, f"adapter error: {exc}") from exc

    if raw is None:
        raise InferenceFailure(item.id, "refused")
    try:
        response = raw if isinstance(raw, DocResponse) else DocResponse.model_validate(raw)
    except ValidationError as exc:
        LOGGER.debug("Malformed response for %s: %s", item.id, exc)
        raise InferenceFailure(item.id, "malformed response") from exc
    return response.to_doc_block(item.id)
