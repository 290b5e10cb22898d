"""Name-driven documentation adapter.

Produces short, deterministic docs from identifiers and signatures. It stands
in for a language model when none is configured and keeps the pipeline
reproducible in tests.
"""

from __future__ import annotations

import re

from rustscribe.inference.adapter import DocResponse, ItemDescriptor, SectionPayload
from rustscribe.utils.text import humanize_identifier, split_identifier

_KNOWN_FUNCTIONS = {
    "new": "Creates a new instance.",
    "default": "Returns the default value.",
    "fmt": "Formats the value using the given formatter.",
    "main": "Program entry point.",
    "clone": "Returns a copy of the value.",
    "drop": "Releases the resources held by the value.",
    "eq": "Tests two values for equality.",
    "hash": "Feeds this value into the given hasher.",
    "from": "Converts to this type from the input type.",
    "into": "Converts this value into the target type.",
    "len": "Returns the number of elements.",
    "next": "Advances the iterator and returns the next value.",
}

_PREFIX_TEMPLATES = {
    "get": "Returns the {rest}.",
    "set": "Sets the {rest}.",
    "is": "Returns `true` if {rest}.",
    "has": "Returns `true` if it has {rest}.",
    "with": "Returns a copy configured with {rest}.",
    "from": "Creates a value from {rest}.",
    "to": "Converts this value to {rest}.",
    "as": "Borrows this value as {rest}.",
    "into": "Converts this value into {rest}.",
    "try": "Attempts to {rest}.",
    "new": "Creates a new instance with {rest}.",
}

_PARAMS = re.compile(r"\bfn\s+\S+\s*(?:<.*?>\s*)?\((?P<params>.*?)\)\s*(?:->\s*(?P<ret>.*?))?\s*(?:\bwhere\b.*)?;?$")


def _third_person(verb: str) -> str:
    if verb.endswith(("s", "sh", "ch", "x", "z")):
        return verb + "es"
    if verb.endswith("y") and len(verb) > 1 and verb[-2] not in "aeiou":
        return verb[:-1] + "ies"
    return verb + "s"


def _words(name: str) -> list[str]:
    if name.isupper():
        name = name.lower()
    return split_identifier(name)


def _parameters(signature: str) -> tuple[list[str], str | None]:
    match = _PARAMS.search(signature)
    if not match:
        return [], None
    names: list[str] = []
    depth = 0
    current: list[str] = []
    for token in match.group("params").split():
        if token in ("(", "[", "<"):
            depth += 1
        elif token in (")", "]", ">"):
            depth -= 1
        if token == "," and depth == 0:
            names.append(" ".join(current))
            current = []
            continue
        current.append(token)
    if current:
        names.append(" ".join(current))
    params = []
    for param in names:
        pattern = param.split(" : ")[0].strip()
        if not pattern or pattern.split()[-1] == "self":
            continue
        params.append(pattern.replace("mut ", ""))
    ret = match.group("ret")
    return params, ret.strip() if ret else None


def _join_code(names: list[str]) -> str:
    quoted = [f"`{name}`" for name in names]
    if len(quoted) == 1:
        return quoted[0]
    return ", ".join(quoted[:-1]) + " and " + quoted[-1]


class HeuristicAdapter:
    """Deterministic adapter building docs from names and signatures."""

    def infer(self, item: ItemDescriptor) -> DocResponse:
        builder = getattr(self, f"_{item.item_kind}", self._generic)
        summary, sections = builder(item)
        return DocResponse(summary=summary, sections=sections)

    def _function(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        params, ret = _parameters(item.signature_text)
        words = _words(item.name)
        summary = _KNOWN_FUNCTIONS.get(item.name)
        if summary is None:
            head, rest = (words[0], " ".join(words[1:])) if words else (item.name, "")
            template = _PREFIX_TEMPLATES.get(head)
            if template and rest:
                summary = template.format(rest=rest)
            else:
                verb = _third_person(head).capitalize()
                if rest:
                    summary = f"{verb} the {rest}."
                elif params:
                    summary = f"{verb} the given {_join_code(params)}."
                else:
                    summary = f"{verb}."
        sections: list[SectionPayload] = []
        if ret and re.search(r"\bResult\b", ret):
            sections.append(
                SectionPayload(
                    heading="Errors",
                    lines=["Returns an error if the operation fails."],
                )
            )
        if item.is_unsafe:
            sections.append(
                SectionPayload(
                    heading="Safety",
                    lines=["The caller must uphold the invariants this function relies on."],
                )
            )
        return summary, sections

    def _struct(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"A {' '.join(_words(item.name))}.", []

    _union = _struct

    def _enum(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"Enumerates {' '.join(_words(item.name))} values.", []

    def _variant(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"The `{item.name}` variant.", []

    def _field(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        if item.name.isdigit():
            return f"Field `{item.name}`.", []
        return f"The {' '.join(_words(item.name))}.", []

    def _trait(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        sections = []
        if item.is_unsafe:
            sections.append(
                SectionPayload(
                    heading="Safety",
                    lines=["Implementors must uphold the invariants this trait relies on."],
                )
            )
        return f"Common interface for {' '.join(_words(item.name))} types.", sections

    def _module(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"The `{item.name}` module.", []

    def _const(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"The {' '.join(_words(item.name))} constant.", []

    def _static(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"The {' '.join(_words(item.name))} static.", []

    def _type_alias(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        _, _, target = item.signature_text.partition(" = ")
        target = target.rstrip(" ;").replace(" ", "")
        if target:
            return f"Alias for `{target}`.", []
        return f"{humanize_identifier(item.name)} type.", []

    def _macro(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"The `{item.name}!` macro.", []

    def _generic(self, item: ItemDescriptor) -> tuple[str, list[SectionPayload]]:
        return f"{humanize_identifier(item.name)}.", []
