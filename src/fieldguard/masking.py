"""Format-aware, one-way masking of detected spans."""

from __future__ import annotations
import logging
from typing import Iterable

from .types import BuiltinCategory, Span

logger = logging.getLogger(__name__)

GLYPH = "•"
PLACEHOLDER = "[REDACTED]"
VISIBLE_DIGITS = 4
# Minimum glyph run after the first character of an email local part
EMAIL_MIN_GLYPHS = 7

_CARD_SEPARATORS = (" ", "-")
_DIGIT_MASKED = frozenset({
    BuiltinCategory.SSN,
    BuiltinCategory.PHONE,
    BuiltinCategory.GDPR_NIN,
})


def mask(span: Span) -> str:
    """Return the redacted replacement for a span's value."""
    if span.category is BuiltinCategory.CREDIT_CARD:
        return mask_card(span.value)
    if span.category is BuiltinCategory.EMAIL:
        return mask_email(span.value)
    if span.category in _DIGIT_MASKED:
        return mask_digits(span.value)
    return PLACEHOLDER


def mask_card(value: str) -> str:
    """Keep the last four digits; regroup in fours when the original was grouped."""
    digits = "".join(ch for ch in value if ch not in " -")
    if len(digits) <= VISIBLE_DIGITS:
        return PLACEHOLDER
    tail = digits[-VISIBLE_DIGITS:]
    hidden = GLYPH * (len(digits) - VISIBLE_DIGITS)
    for sep in _CARD_SEPARATORS:
        if sep in value:
            groups = [hidden[i:i + 4] for i in range(0, len(hidden), 4)]
            return sep.join(groups + [tail])
    return hidden + tail


def mask_email(value: str) -> str:
    """Keep the first character of the local part and the whole domain."""
    local, at, domain = value.rpartition("@")
    if not at or not local or not domain:
        return PLACEHOLDER
    return f"{local[0]}{GLYPH * max(len(local) - 1, EMAIL_MIN_GLYPHS)}@{domain}"


def mask_digits(value: str) -> str:
    """Glyph every digit except the last four; separators stay put."""
    remaining = sum(ch.isdigit() for ch in value)
    out: list[str] = []
    for ch in value:
        if ch.isdigit():
            out.append(GLYPH if remaining > VISIBLE_DIGITS else ch)
            remaining -= 1
        else:
            out.append(ch)
    return "".join(out)


def mask_text(text: str, spans: Iterable[Span]) -> str:
    """Replace each span's value in text with its mask, longest value first.

    A span whose value no longer appears verbatim (the text changed since
    detection) is skipped.
    """
    result = text
    for span in sorted(spans, key=lambda s: len(s.value), reverse=True):
        if span.value not in result:
            logger.debug("span %s no longer present; not masked", span.label)
            continue
        result = result.replace(span.value, mask(span), 1)
    return result
