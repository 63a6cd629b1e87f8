"""Core types."""

from __future__ import annotations
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class BuiltinCategory(str, Enum):
    """Categories the engine knows at import time.  Values are wire labels."""
    CREDIT_CARD = "CREDIT_CARD"
    SSN = "SSN"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    API_KEY = "API_KEY"
    AWS_KEY = "AWS_KEY"
    PRIVATE_KEY = "PRIVATE_KEY"
    IP_ADDRESS = "IP_ADDRESS"
    PASSWORD = "PASSWORD"
    JWT = "JWT"
    SLACK_TOKEN = "SLACK_TOKEN"
    HIPAA_MRN = "HIPAA_MRN"
    HIPAA_ACCOUNT = "HIPAA_ACCOUNT"
    HIPAA_DOB = "HIPAA_DOB"
    PCI_CVV = "PCI_CVV"
    PCI_PAN = "PCI_PAN"
    PCI_TRACK = "PCI_TRACK"
    PCI_EXPIRY = "PCI_EXPIRY"
    GDPR_PASSPORT = "GDPR_PASSPORT"
    GDPR_NIN = "GDPR_NIN"
    GDPR_IBAN = "GDPR_IBAN"
    CUSTOM = "CUSTOM"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CustomCategory:
    """An organization-defined category not known at import time."""
    label: str

    def __str__(self) -> str:
        return self.label


Category = Union[BuiltinCategory, CustomCategory]

_BUILTIN_BY_LABEL = {c.value: c for c in BuiltinCategory}


def parse_category(label: str) -> Category:
    """Resolve a wire label: built-in names map to the enum, anything else is custom."""
    builtin = _BUILTIN_BY_LABEL.get(label.strip().upper())
    if builtin is not None:
        return builtin
    return CustomCategory(label)


class FieldKind(str, Enum):
    """Declared input kind of a host field."""
    TEXT = "text"
    EMAIL = "email"
    TEL = "tel"
    PASSWORD = "password"
    NUMBER = "number"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "FieldKind":
        if not value:
            return cls.TEXT
        value = value.strip().lower()
        # Browser input types that carry free text
        if value in ("text", "textarea", "search", "url", "contenteditable"):
            return cls.TEXT
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class Action(str, Enum):
    """What happened to a detection.  Values are wire labels."""
    OBSERVED = "detected"
    MASKED = "anonymized"


@dataclass(frozen=True, slots=True)
class Span:
    """A single detected occurrence of a sensitive-data category."""
    category: Category
    value: str
    start: int | None = None
    end: int | None = None
    confidence: int = 100              # 0–100
    source: str = "builtin"            # "builtin" | "custom" | "remote"
    matcher: str | None = None

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("span value must not be empty")
        if (self.start is None) != (self.end is None):
            raise ValueError("span offsets must be both present or both absent")
        if self.start is not None:
            if self.end < self.start:
                raise ValueError(f"span end {self.end} precedes start {self.start}")
            if self.end - self.start != len(self.value):
                raise ValueError("span value length does not match its offsets")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence out of range: {self.confidence}")

    def __repr__(self) -> str:
        # Keep raw values out of logs and tracebacks
        return (
            f"Span(category={str(self.category)!r}, value='***', "
            f"start={self.start}, end={self.end}, confidence={self.confidence}, "
            f"source={self.source!r}, matcher={self.matcher!r})"
        )

    @property
    def label(self) -> str:
        return str(self.category)

    def to_dict(self, *, include_value: bool = True) -> dict[str, Any]:
        return {
            "type": self.label,
            "value": self.value if include_value else "***",
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
            "source": self.source,
            "matcher": self.matcher,
        }


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Read-only snapshot of a host field, taken on focus or scan."""
    kind: FieldKind = FieldKind.TEXT
    name: str = ""
    placeholder: str = ""
    label: str = ""
    title: str = ""            # title / aria-label text

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldDescriptor":
        return cls(
            kind=FieldKind.parse(data.get("kind") or data.get("type")),
            name=data.get("name") or "",
            placeholder=data.get("placeholder") or "",
            label=data.get("label") or "",
            title=data.get("title") or data.get("aria_label") or "",
        )


@dataclass(slots=True)
class RegistrationReport:
    """Outcome of replacing the custom pattern set."""
    registered: list[str] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)   # (name, reason)
    inactive: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "registered": list(self.registered),
            "errors": [{"name": n, "reason": r} for n, r in self.errors],
            "inactive": list(self.inactive),
        }


@dataclass(frozen=True, slots=True)
class QueueItem:
    """A reportable detection event.  Never carries the matched value."""
    category: str
    context: str                        # e.g. the site hostname
    action: Action
    metadata: dict[str, Any] = field(default_factory=dict)
    enqueued_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.category,
            "domain": self.context,
            "action": self.action.value,
            "metadata": dict(self.metadata),
            "timestamp": int(self.enqueued_at * 1000),
        }


@dataclass(frozen=True, slots=True)
class RemoteDetection:
    """One finding returned by the remote classifier."""
    category: str
    value: str
    confidence: int = 80
    reason: str = ""


@dataclass(slots=True)
class RemoteAnalysis:
    """Parsed remote classifier response."""
    has_sensitive_data: bool = False
    confidence: int = 0
    detections: list[RemoteDetection] = field(default_factory=list)
    risk_level: str = "low"             # low | medium | high | critical

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteAnalysis":
        detections = []
        for d in data.get("detections") or []:
            value = d.get("value")
            if not isinstance(value, str):
                continue
            detections.append(RemoteDetection(
                category=str(d.get("type") or d.get("category") or "CUSTOM"),
                value=value,
                confidence=_clamp_confidence(d.get("confidence", 80)),
                reason=str(d.get("reason") or ""),
            ))
        return cls(
            has_sensitive_data=bool(data.get("hasPII", data.get("has_sensitive_data", False))),
            confidence=_clamp_confidence(data.get("confidence", 0)),
            detections=detections,
            risk_level=str(data.get("risk_level") or "low"),
        )


@dataclass(slots=True)
class RemoteOutcome:
    """What the scan gate decided for one remote classification request."""
    spans: list[Span] = field(default_factory=list)
    status: str = "skipped"     # remote | cached | reused | skipped | failed | abandoned
    message: str | None = None  # informational, e.g. quota exhausted
    risk_level: str | None = None


def _clamp_confidence(raw: Any) -> int:
    try:
        value = int(round(float(raw)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, value))
