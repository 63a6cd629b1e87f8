"""Scan gate: decides when the remote classifier is worth calling.

Local matching always runs.  A request only reaches the remote classifier
when:

  - the text passes the length / noise heuristics (``should_scan``),
  - no live cached result exists for the same content, and
  - the text changed significantly since the last classified text
    (otherwise the last decision is reused).

The await on the classifier is the only suspension point in the engine.
A response that arrives after the caller's token was cancelled is
dropped without touching the cache.
"""

from __future__ import annotations
import difflib
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Protocol

from .cache import ResultCache
from .errors import ClassifierError, QuotaExceededError
from .field_context import coarse_kind, expected_categories, filter_expected
from .types import (
    BuiltinCategory,
    Category,
    FieldDescriptor,
    RemoteAnalysis,
    RemoteOutcome,
    Span,
    parse_category,
)

logger = logging.getLogger(__name__)

# Values that are the classifier echoing an existing redaction
_REDACTED_MARKER = re.compile(r"•|\[REDACTED[^\]]*\]|\*{3,}")

# Remote labels that differ from the built-in wire labels
_REMOTE_ALIASES: dict[str, BuiltinCategory] = {
    "EMAIL_ADDRESS": BuiltinCategory.EMAIL,
    "PHONE_NUMBER": BuiltinCategory.PHONE,
    "BIRTHDATE": BuiltinCategory.HIPAA_DOB,
    "AWS_ACCESS_KEY": BuiltinCategory.AWS_KEY,
}


class Classifier(Protocol):
    """Remote classification oracle."""

    async def classify(self, text: str, context: str, coarse_kind: str) -> RemoteAnalysis:
        ...


class CancellationToken:
    """Tied to a field's focus lifetime; cancelled when the host abandons the field."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class GateConfig:
    """Thresholds for the scan gate."""
    min_length: int = 8
    max_length: int = 2000
    min_distinct: int = 5           # distinct characters required ...
    noise_length: int = 20          # ... once text is longer than this
    change_chars: int = 10          # length delta that always counts as significant
    change_ratio: float = 0.9       # similarity below this is significant


def should_scan(text: str, config: GateConfig | None = None) -> bool:
    """Reject text that is too short, too long, or low-entropy noise."""
    cfg = config or GateConfig()
    if len(text) < cfg.min_length or len(text) > cfg.max_length:
        return False
    if len(text) > cfg.noise_length and len(set(text)) < cfg.min_distinct:
        return False
    return True


def has_significant_change(previous: str | None, current: str, config: GateConfig | None = None) -> bool:
    """True when current differs enough from previous to justify a new remote call."""
    cfg = config or GateConfig()
    if previous is None:
        return True
    if previous == current:
        return False
    if abs(len(current) - len(previous)) >= cfg.change_chars:
        return True
    return difflib.SequenceMatcher(None, previous, current).ratio() < cfg.change_ratio


def remote_category(label: str) -> Category:
    alias = _REMOTE_ALIASES.get(label.strip().upper())
    if alias is not None:
        return alias
    return parse_category(label)


class ScanGate:
    """Gates, caches and post-processes remote classification for one field flow."""

    __slots__ = ("_classifier", "_cache", "_config", "_last_text", "_last_spans", "_last_risk")

    def __init__(
        self,
        classifier: Classifier | None,
        cache: ResultCache,
        config: GateConfig | None = None,
    ) -> None:
        self._classifier = classifier
        self._cache = cache
        self._config = config or GateConfig()
        self._last_text: str | None = None
        self._last_spans: tuple[Span, ...] = ()
        self._last_risk: str | None = None

    async def classify(
        self,
        text: str,
        *,
        local_spans: Iterable[Span] = (),
        field: FieldDescriptor | None = None,
        context: str = "",
        token: CancellationToken | None = None,
    ) -> RemoteOutcome:
        """Remote spans for text, as seen from field.

        Cached and remembered spans are field-independent; local-value
        dedupe and expected-category filtering run on every return path.
        """
        if self._classifier is None or not should_scan(text, self._config):
            return RemoteOutcome(status="skipped")
        if token is not None and token.cancelled:
            return RemoteOutcome(status="abandoned")
        local_spans = list(local_spans)

        entry = self._cache.get(text)
        if entry is not None:
            return RemoteOutcome(
                spans=_for_field(entry.spans, local_spans, field),
                status="cached",
                risk_level=entry.risk_level,
            )

        if self._last_text is not None and not has_significant_change(self._last_text, text, self._config):
            return RemoteOutcome(
                spans=_for_field(_relocate(self._last_spans, text), local_spans, field),
                status="reused",
                risk_level=self._last_risk,
            )

        try:
            analysis = await self._classifier.classify(text, context, coarse_kind(field))
        except QuotaExceededError as exc:
            logger.info("remote classification unavailable: %s", exc)
            return RemoteOutcome(status="failed", message=str(exc))
        except ClassifierError as exc:
            logger.warning("remote classification failed: %s", exc)
            return RemoteOutcome(status="failed")
        except Exception:
            logger.warning("remote classification failed", exc_info=True)
            return RemoteOutcome(status="failed")

        if token is not None and token.cancelled:
            logger.debug("field abandoned while classifying; response ignored")
            return RemoteOutcome(status="abandoned")

        spans = _to_spans(text, analysis)
        self._cache.put(text, spans, risk_level=analysis.risk_level)
        self._last_text = text
        self._last_spans = tuple(spans)
        self._last_risk = analysis.risk_level
        return RemoteOutcome(
            spans=_for_field(spans, local_spans, field),
            status="remote",
            risk_level=analysis.risk_level,
        )

    def reset(self) -> None:
        """Forget the last decision (e.g. when the field changes)."""
        self._last_text = None
        self._last_spans = ()
        self._last_risk = None


def _to_spans(text: str, analysis: RemoteAnalysis) -> list[Span]:
    """Field-independent spans from a classifier response."""
    seen: set[tuple[str, str]] = set()
    spans: list[Span] = []
    for det in analysis.detections:
        value = det.value
        if not value or _REDACTED_MARKER.search(value):
            continue
        category = remote_category(det.category)
        key = (str(category), value.lower())
        if key in seen:
            continue
        seen.add(key)
        start = text.find(value)
        spans.append(Span(
            category=category,
            value=value,
            start=start if start >= 0 else None,
            end=start + len(value) if start >= 0 else None,
            confidence=det.confidence,
            source="remote",
        ))
    return spans


def _for_field(
    spans: Iterable[Span],
    local_spans: Iterable[Span],
    field: FieldDescriptor | None,
) -> list[Span]:
    """Drop values already found locally and categories the field expects."""
    local_values = {s.value.lower() for s in local_spans}
    fresh = [s for s in spans if s.value.lower() not in local_values]
    return filter_expected(fresh, expected_categories(field))


def _relocate(spans: Iterable[Span], text: str) -> list[Span]:
    """Re-anchor previous spans in the current text, dropping those that vanished."""
    out: list[Span] = []
    for span in spans:
        start = text.find(span.value)
        if start < 0:
            continue
        out.append(Span(
            category=span.category,
            value=span.value,
            start=start,
            end=start + len(span.value),
            confidence=span.confidence,
            source=span.source,
            matcher=span.matcher,
        ))
    return out
