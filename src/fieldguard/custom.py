"""Organization-supplied patterns.

Host patterns are compiled with RE2 (linear-time, no backtracking) at
registration.  Anything RE2 refuses (syntax errors, backreferences,
lookaround) is reported and left out; the rest of the set still registers.

Usage:
    registry = PatternRegistry()
    report = registry.register([
        {"id": "1", "name": "Employee ID", "pattern": r"EMP-\\d{6}",
         "pattern_type": "EMPLOYEE_ID", "is_active": True},
    ])
    spans = scan_custom("badge EMP-123456", registry.active)
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Iterable

import re2

from .errors import PatternError
from .types import CustomCategory, RegistrationReport, Span

logger = logging.getLogger(__name__)

DEFAULT_CUSTOM_CONFIDENCE = 90


@dataclass(frozen=True, slots=True)
class CustomPattern:
    """A pattern definition as supplied by the host."""
    id: str
    name: str
    pattern: str
    pattern_type: str = "custom"
    description: str | None = None
    is_active: bool = True
    confidence: int = DEFAULT_CUSTOM_CONFIDENCE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomPattern":
        name = str(data.get("name") or data.get("id") or "unnamed")
        return cls(
            id=str(data.get("id") or name),
            name=name,
            pattern=data.get("pattern") or "",
            pattern_type=str(data.get("pattern_type") or data.get("category") or ""),
            description=data.get("description"),
            is_active=_coerce_active(data.get("is_active", True)),
            confidence=int(data.get("confidence", DEFAULT_CUSTOM_CONFIDENCE)),
        )


@dataclass(frozen=True, slots=True)
class CustomMatcher:
    """Compiled, active form of a CustomPattern."""
    id: str
    name: str
    label: str               # declared category label, normalized during merge
    regex: Any               # re2._Regexp
    confidence: int = DEFAULT_CUSTOM_CONFIDENCE


def compile_pattern(pattern: CustomPattern) -> CustomMatcher:
    """Compile one pattern or raise PatternError."""
    if not isinstance(pattern.pattern, str) or not pattern.pattern:
        raise PatternError(pattern.name, "empty pattern")
    if not 0 <= pattern.confidence <= 100:
        raise PatternError(pattern.name, f"confidence out of range: {pattern.confidence}")
    try:
        # Always case-insensitive
        regex = re2.compile("(?i)" + pattern.pattern)
    except re2.error as exc:
        raise PatternError(pattern.name, str(exc) or "invalid pattern") from exc
    return CustomMatcher(
        id=pattern.id,
        name=pattern.name,
        label=pattern.pattern_type,
        regex=regex,
        confidence=pattern.confidence,
    )


class PatternRegistry:
    """Holds the active custom matcher set, replaced wholesale on register()."""

    __slots__ = ("_active",)

    def __init__(self) -> None:
        self._active: tuple[CustomMatcher, ...] = ()

    def register(self, patterns: Iterable[CustomPattern | dict[str, Any]]) -> RegistrationReport:
        """Compile and install a new pattern set.  Partial success is normal."""
        report = RegistrationReport()
        compiled: list[CustomMatcher] = []
        for raw in patterns:
            try:
                pattern = raw if isinstance(raw, CustomPattern) else CustomPattern.from_dict(raw)
            except (AttributeError, TypeError, ValueError) as exc:
                name = str(raw.get("name", "unnamed")) if isinstance(raw, dict) else "unnamed"
                report.errors.append((name, f"malformed definition: {exc}"))
                continue
            if not pattern.is_active:
                report.inactive.append(pattern.name)
                continue
            try:
                compiled.append(compile_pattern(pattern))
            except PatternError as exc:
                logger.warning("rejected custom pattern %r: %s", exc.name, exc.reason)
                report.errors.append((exc.name, exc.reason))
                continue
            report.registered.append(pattern.name)
        self._active = tuple(compiled)
        logger.info(
            "custom patterns registered: %d active, %d rejected, %d inactive",
            len(report.registered), len(report.errors), len(report.inactive),
        )
        return report

    @property
    def active(self) -> tuple[CustomMatcher, ...]:
        return self._active

    def __len__(self) -> int:
        return len(self._active)


def scan_custom(text: str, matchers: Iterable[CustomMatcher]) -> list[Span]:
    """Run custom matchers in registration order.  A failing matcher yields nothing."""
    spans: list[Span] = []
    if not text:
        return spans
    for matcher in matchers:
        try:
            found = [
                Span(
                    category=CustomCategory(matcher.label),
                    value=m.group(),
                    start=m.start(),
                    end=m.end(),
                    confidence=matcher.confidence,
                    source="custom",
                    matcher=matcher.name,
                )
                for m in matcher.regex.finditer(text)
                if m.group()
            ]
        except Exception:
            logger.warning("custom matcher %r failed; skipping", matcher.name, exc_info=True)
            continue
        spans.extend(found)
    return spans


def _coerce_active(value: Any) -> bool:
    """Hosts send the active flag as bool, 0/1, or "true"/"1"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return False
