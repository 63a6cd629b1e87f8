"""Built-in matchers: the fixed, validated patterns for structured data.

These run before any organization-supplied pattern and are near-zero
cost.  Each matcher owns its validator: card numbers must pass Luhn,
IBANs must pass mod-97.  The same module provides the shape checks the
merge step uses to re-classify untrusted custom matches.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Callable

from .types import BuiltinCategory, Category, Span

logger = logging.getLogger(__name__)

_IC = re.IGNORECASE


# ═══════════════════════════════════════════════════════════════════════════
# Validators
# ═══════════════════════════════════════════════════════════════════════════

def luhn_check(value: str) -> bool:
    """Mod-10 checksum over the digits of value; 13–19 digits required."""
    digits = [int(ch) for ch in value if ch.isdigit()]
    if not 13 <= len(digits) <= 19:
        return False
    total = 0
    for i, d in enumerate(reversed(digits)):
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def iban_check(value: str) -> bool:
    """ISO 13616 mod-97 check."""
    compact = re.sub(r"[\s-]", "", value).upper()
    if not 15 <= len(compact) <= 34:
        return False
    if not (compact[:2].isalpha() and compact[2:4].isdigit() and compact.isalnum()):
        return False
    rearranged = compact[4:] + compact[:4]
    numeric = "".join(str(int(ch, 36)) for ch in rearranged)
    return int(numeric) % 97 == 1


# ═══════════════════════════════════════════════════════════════════════════
# Matchers
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Matcher:
    """A named pattern plus optional validator for one category."""
    name: str
    category: Category
    pattern: re.Pattern
    validator: Callable[[str], bool] | None = None
    confidence: int = 100
    # On validator failure, retry runs of whole digit groups inside the match
    split_groups: bool = False


_EMAIL = r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}"
_PEM_LABEL = r"(?:RSA |EC |DSA |OPENSSH |ENCRYPTED )?PRIVATE KEY"
_PRIVATE_KEY = (
    rf"-----BEGIN {_PEM_LABEL}-----[A-Za-z0-9+/=:,\-\s]+?-----END {_PEM_LABEL}-----"
)
_AWS_KEY = r"AKIA[0-9A-Z]{16}"
_IPV4 = (
    r"(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}"
    r"(?:25[0-5]|2[0-4]\d|[01]?\d\d?)"
)
_JWT = r"eyJ[A-Za-z0-9_\-]*\.eyJ[A-Za-z0-9_\-]*\.[A-Za-z0-9_\-]*"
_SSN = r"\d{3}-\d{2}-\d{4}"

# Fixed evaluation order.  Offsets and ordering of the scan output follow it.
BUILTIN_MATCHERS: tuple[Matcher, ...] = (
    # 13–19 digits, single space/hyphen separators allowed between digits
    Matcher("credit_card", BuiltinCategory.CREDIT_CARD, re.compile(
        r"(?<!\d)(?:\d[ \-]?){12,18}\d(?!\d)"
    ), validator=luhn_check, split_groups=True),

    Matcher("ssn", BuiltinCategory.SSN, re.compile(rf"\b{_SSN}\b")),

    Matcher("email", BuiltinCategory.EMAIL, re.compile(rf"\b{_EMAIL}\b")),

    # +cc optional, (ddd) or ddd, then ddd dddd
    Matcher("phone", BuiltinCategory.PHONE, re.compile(
        r"(?<!\w)(?:\+\d{1,3}[\s\-]?)?"
        r"(?:\(\d{3}\)|\d{3})[\s.\-]?\d{3}[\s.\-]?\d{4}"
        r"(?!\w)"
    )),

    Matcher("api_key", BuiltinCategory.API_KEY, re.compile(
        r"api[_\-]?key[\"'\s:=]+[\"']?[A-Za-z0-9_\-]{20,}[\"']?"
        r"|\b[spr]k_(?:live|test)_[A-Za-z0-9]{16,}"
    , _IC)),

    Matcher("aws_key", BuiltinCategory.AWS_KEY, re.compile(
        rf"(?<![A-Z0-9]){_AWS_KEY}(?![A-Z0-9])"
    )),

    Matcher("private_key", BuiltinCategory.PRIVATE_KEY, re.compile(
        _PRIVATE_KEY, re.DOTALL
    )),

    Matcher("ip_address", BuiltinCategory.IP_ADDRESS, re.compile(rf"\b{_IPV4}\b")),

    Matcher("password", BuiltinCategory.PASSWORD, re.compile(
        r"\b(?:password|passwd|pwd)\s*[:=]\s*[\"']?[^\s\"']{6,}[\"']?"
    , _IC)),

    Matcher("jwt", BuiltinCategory.JWT, re.compile(rf"\b{_JWT}")),

    Matcher("slack_token", BuiltinCategory.SLACK_TOKEN, re.compile(
        r"\bxox[pborsa]-\d{10,13}-\d{10,13}-[0-9A-Za-z]{24,32}\b"
    )),

    # --- HIPAA ---
    Matcher("hipaa_mrn", BuiltinCategory.HIPAA_MRN, re.compile(
        r"\bMRN[\-\s:#]*\d{6,12}\b"
    , _IC)),

    Matcher("hipaa_account", BuiltinCategory.HIPAA_ACCOUNT, re.compile(
        r"\bAccount[\-\s]?(?:Number|No\.?|#)?[\-\s:#]*\d{6,12}\b"
    , _IC)),

    Matcher("hipaa_dob", BuiltinCategory.HIPAA_DOB, re.compile(
        r"\b(?:DOB|Date of Birth)\s*[\-:]?\s*\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b"
    , _IC)),

    # --- PCI-DSS ---
    Matcher("pci_cvv", BuiltinCategory.PCI_CVV, re.compile(
        r"\b(?:CVV2?|CVC2?|Card Verification)[\-\s]?(?:Value|Code)?[\-\s:]*\d{3,4}\b"
    , _IC)),

    Matcher("pci_pan", BuiltinCategory.PCI_PAN, re.compile(
        r"\b(?:PAN|Primary Account Number)[\-\s:]*\d{13,19}\b"
    , _IC)),

    Matcher("pci_track", BuiltinCategory.PCI_TRACK, re.compile(
        r"%?\b[A-Z]\d{13,19}=[\d?]{4,}"
    )),

    Matcher("pci_expiry", BuiltinCategory.PCI_EXPIRY, re.compile(
        r"\b(?:Exp|Expiry|Expiration)(?:\s+Date)?[\-\s:]*\d{1,2}[/\-]\d{2,4}\b"
    , _IC)),

    # --- GDPR ---
    Matcher("gdpr_passport", BuiltinCategory.GDPR_PASSPORT, re.compile(
        r"\bPassport(?:\s+(?:Number|No\.?|#))?[\-\s:#]*(?=[A-Z]*\d)[A-Z0-9]{6,9}\b"
    , _IC)),

    Matcher("gdpr_nin", BuiltinCategory.GDPR_NIN, re.compile(
        r"\b(?:NINO|NI|National Insurance(?:\s+Number)?)[\-\s:]*[A-Z]{2}\d{6}[A-Z]\b"
    , _IC)),

    Matcher("gdpr_iban", BuiltinCategory.GDPR_IBAN, re.compile(
        r"\b[A-Z]{2}\d{2}[A-Z0-9]{11,30}\b"
    ), validator=iban_check),
)


def scan_builtin(text: str) -> list[Span]:
    """Run every built-in matcher, in order, keeping validator-accepted values."""
    spans: list[Span] = []
    if not text:
        return spans
    for matcher in BUILTIN_MATCHERS:
        try:
            found = _run(matcher, text)
        except Exception:
            logger.warning("built-in matcher %s failed; skipping", matcher.name, exc_info=True)
            continue
        spans.extend(found)
    return spans


_DIGIT_GROUP = re.compile(r"\d+")


def _valid_group_run(value: str, validator: Callable[[str], bool]) -> tuple[int, int] | None:
    """Longest, then leftmost, proper run of whole digit groups the validator accepts."""
    groups = [(g.start(), g.end()) for g in _DIGIT_GROUP.finditer(value)]
    for size in range(len(groups) - 1, 0, -1):
        for i in range(len(groups) - size + 1):
            start, end = groups[i][0], groups[i + size - 1][1]
            if validator(value[start:end]):
                return start, end
    return None


def _run(matcher: Matcher, text: str) -> list[Span]:
    found: list[Span] = []
    for m in matcher.pattern.finditer(text):
        value = m.group()
        if not value:
            continue
        start, end = m.start(), m.end()
        if matcher.validator is not None and not matcher.validator(value):
            if not matcher.split_groups:
                continue
            run = _valid_group_run(value, matcher.validator)
            if run is None:
                continue
            start, end = start + run[0], start + run[1]
            value = text[start:end]
        found.append(Span(
            category=matcher.category,
            value=value,
            start=start,
            end=end,
            confidence=matcher.confidence,
            source="builtin",
            matcher=matcher.name,
        ))
    return found


# ═══════════════════════════════════════════════════════════════════════════
# Shape checks: whole-value tests used to re-label custom matches
# ═══════════════════════════════════════════════════════════════════════════

_CARD_SHAPE = re.compile(r"\d(?:[ \-]?\d){12,18}")

_SHAPES: tuple[tuple[BuiltinCategory, re.Pattern, Callable[[str], bool] | None], ...] = (
    (BuiltinCategory.PRIVATE_KEY, re.compile(_PRIVATE_KEY, re.DOTALL), None),
    (BuiltinCategory.EMAIL, re.compile(_EMAIL), None),
    (BuiltinCategory.CREDIT_CARD, _CARD_SHAPE, luhn_check),
    (BuiltinCategory.AWS_KEY, re.compile(_AWS_KEY), None),
    (BuiltinCategory.JWT, re.compile(_JWT), None),
    (BuiltinCategory.SSN, re.compile(_SSN), None),
    (BuiltinCategory.IP_ADDRESS, re.compile(_IPV4), None),
)


def classify_shape(value: str) -> BuiltinCategory | None:
    """Return the canonical category whose shape the whole value has, if any."""
    candidate = value.strip()
    for category, pattern, validator in _SHAPES:
        if pattern.fullmatch(candidate) and (validator is None or validator(candidate)):
            return category
    return None
