"""Helpers for walking loosely-structured compendium entries.

Compendium text comes as strings, nested ``{name, entries}`` objects, and
lists of either. Proficiency specs mix fixed grants with
``{"choose": {"from": [...], "count": n}}`` prompts.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from charplanner.models.records import ChoicePrompt


T = TypeVar("T")

_NON_SLUG = re.compile(r"[^a-z0-9]+")

# Keys that describe a prompt rather than a grant.
_CHOICE_KEYS = frozenset({"choose", "from", "entries"})


def slugify(value: object) -> str:
    """'Battle Master' -> 'battle-master'. None/empty -> ''."""
    if not value:
        return ""
    return _NON_SLUG.sub("-", str(value).strip().lower()).strip("-")


def dedupe(values: Iterable[T | None]) -> list[T]:
    """Drop None and repeats, keeping first-seen order."""
    seen: set[T] = set()
    result: list[T] = []
    for value in values:
        if value is None or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def extract_text(value: Any) -> str | None:
    """Flatten an entries-like value into newline-joined text."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        parts = [extract_text(entry) for entry in value]
        joined = "\n".join(p for p in parts if p)
        return joined or None
    if isinstance(value, Mapping):
        if isinstance(value.get("entry"), str):
            return value["entry"]
        if isinstance(value.get("entries"), (list, tuple)):
            return extract_text(value["entries"])
        if isinstance(value.get("text"), str):
            return value["text"]
    return None


def collect_granted_strings(value: Any) -> list[str]:
    """Fixed grants in a proficiency/language spec, ignoring choice prompts.

    ``["Common", {"elvish": True}]`` yields ``["Common", "elvish"]``: keys
    flagged ``True`` in a mapping count as grants, as the compendium uses
    both shapes.
    """
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        results: list[str] = []
        for entry in value:
            results.extend(collect_granted_strings(entry))
        return results
    if isinstance(value, Mapping):
        results = []
        if value.get("entries"):
            results.extend(collect_granted_strings(value["entries"]))
        for key, nested in value.items():
            if key in _CHOICE_KEYS:
                continue
            if nested is True:
                results.append(str(key))
            elif isinstance(nested, str):
                results.append(nested)
            elif isinstance(nested, (list, tuple)):
                results.extend(item for item in nested if isinstance(item, str))
            elif isinstance(nested, Mapping):
                results.extend(collect_granted_strings(nested))
        return results
    return []


def collect_choice_prompts(value: Any) -> list[ChoicePrompt]:
    """All 'choose N from [...]' prompts nested anywhere in *value*."""
    if not value or isinstance(value, str):
        return []
    if isinstance(value, (list, tuple)):
        results: list[ChoicePrompt] = []
        for entry in value:
            results.extend(collect_choice_prompts(entry))
        return results
    if not isinstance(value, Mapping):
        return []

    results = []
    choose = value.get("choose")
    if isinstance(choose, Mapping):
        options = choose.get("from")
        names = [o for o in options if isinstance(o, str)] if isinstance(options, (list, tuple)) else []
        if names:
            count = choose.get("count")
            results.append(ChoicePrompt(tuple(names), count if isinstance(count, int) else 1))
    if value.get("entries"):
        results.extend(collect_choice_prompts(value["entries"]))
    for key, nested in value.items():
        if key in _CHOICE_KEYS:
            continue
        if isinstance(nested, (list, tuple, Mapping)):
            results.extend(collect_choice_prompts(nested))
    return results


def flatten_prerequisites(raw: Any) -> list[str]:
    """Prerequisite specs -> readable strings (text or name fields)."""
    if not raw:
        return []
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, (list, tuple)):
        flattened: list[str] = []
        for entry in raw:
            flattened.extend(flatten_prerequisites(entry))
        return flattened
    if isinstance(raw, Mapping):
        if isinstance(raw.get("text"), str):
            return [raw["text"]]
        if isinstance(raw.get("name"), str):
            return [raw["name"]]
        if isinstance(raw.get("entries"), (list, tuple)):
            return flatten_prerequisites(raw["entries"])
    return []
