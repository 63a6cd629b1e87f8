"""Conflict resolution between built-in and custom spans.

Custom patterns come from the host and may re-discover a built-in
category under an arbitrary label.  One physical finding is reported once:

  1. a custom span sitting exactly on a built-in span is dropped;
  2. the rest are re-labelled by shape (email, Luhn card, cloud key, …);
  3. unmatched generic labels collapse to CUSTOM, others are kept;
  4. a re-labelled span equal in (category, value) to a built-in one is dropped;
  5. final dedupe on (value, start, end), first occurrence wins.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Iterable

from .patterns import classify_shape
from .types import BuiltinCategory, Category, Span, parse_category

GENERIC_LABELS = frozenset({"", "custom", "regex"})


def normalize_category(span: Span) -> Category:
    """Canonical category for a custom-sourced span."""
    shape = classify_shape(span.value)
    if shape is not None:
        return shape
    label = str(span.category).strip()
    if label.lower() in GENERIC_LABELS:
        return BuiltinCategory.CUSTOM
    return parse_category(label)


def merge(builtin_spans: Iterable[Span], custom_spans: Iterable[Span]) -> list[Span]:
    """Merge built-in and custom spans.  Built-in wins every tie."""
    builtin = list(builtin_spans)
    exact = {(s.value, s.start, s.end) for s in builtin if s.start is not None}
    same_value = {(s.category, s.value) for s in builtin}

    merged = list(builtin)
    for span in custom_spans:
        if span.start is not None and (span.value, span.start, span.end) in exact:
            continue
        category = normalize_category(span)
        if (category, span.value) in same_value:
            continue
        merged.append(span if category == span.category else replace(span, category=category))
    return dedupe(merged)


def dedupe(spans: Iterable[Span]) -> list[Span]:
    """Drop repeats of (value, start, end), keeping the first."""
    seen: set[tuple[str, int | None, int | None]] = set()
    out: list[Span] = []
    for span in spans:
        key = (span.value, span.start, span.end)
        if key in seen:
            continue
        seen.add(key)
        out.append(span)
    return out


def resolve(spans: Iterable[Span]) -> list[Span]:
    """Merge a mixed list, splitting it by source first."""
    builtin: list[Span] = []
    custom: list[Span] = []
    for span in spans:
        (custom if span.source == "custom" else builtin).append(span)
    return merge(builtin, custom)
