"""Field-context heuristics.

A field built to collect a category of data should not warn when it
receives exactly that category; a card number typed into a "comments"
box still must.  Expectations come from keyword checks over the field's
name, placeholder, label and title, plus its declared input kind.
"""

from __future__ import annotations
import re
from typing import Iterable

from .types import BuiltinCategory as B, Category, CustomCategory, FieldDescriptor, FieldKind, Span

_CAMEL = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[_\-.\[\]/:#*()]+")

_EMAIL_KW = re.compile(r"\b(?:e ?mail|courriel)\b")
_PHONE_KW = re.compile(r"\b(?:phone|tel|telephone|mobile|cell|cellphone|fax)\b")
_PASSWORD_KW = re.compile(r"\b(?:password|passwd|pwd|passcode|pass ?phrase)\b")
_CREDENTIAL_KW = re.compile(r"\b(?:api ?key|access ?key|secret|token)\b")
_NATIONAL_ID_KW = re.compile(
    r"\b(?:ssn|social security|social sec|national id|national insurance|nino|tax id|tin)\b"
)
_CARD_KW = re.compile(r"\b(?:card|credit card|card ?number|cc|cc ?num(?:ber)?|pan|payment)\b")
_CVV_KW = re.compile(r"\b(?:cvv2?|cvc2?|csc|security code|card verification)\b")
_EXPIRY_KW = re.compile(r"\b(?:exp|expiry|expiration|expires|valid thru)\b")
_BIRTH_KW = re.compile(r"\b(?:dob|birth ?date|date of birth|birthday|born)\b")
_IBAN_KW = re.compile(r"\b(?:iban|bic|bank account|account number)\b")
_PASSPORT_KW = re.compile(r"\bpassport\b")
_NAME_KW = re.compile(
    r"(?<!user )(?<!company )(?<!file )(?<!domain )(?<!host )\bname\b"
    r"|\b(?:surname|fname|lname|recipient|sender)\b"
)
_ADDRESS_KW = re.compile(
    r"(?<!mail )(?<!ip )\baddress\b|\b(?:street|city|zip|zipcode|postal|postcode)\b"
)

_CREDENTIALS = frozenset({B.API_KEY, B.AWS_KEY, B.JWT, B.SLACK_TOKEN})

# Keyword group → categories the field is expected to receive
_KEYWORD_EXPECTATIONS: tuple[tuple[re.Pattern, frozenset[Category]], ...] = (
    (_EMAIL_KW, frozenset({B.EMAIL})),
    (_PHONE_KW, frozenset({B.PHONE})),
    (_PASSWORD_KW, frozenset({B.PASSWORD}) | _CREDENTIALS),
    (_CREDENTIAL_KW, _CREDENTIALS),
    (_NATIONAL_ID_KW, frozenset({B.SSN, B.GDPR_NIN})),
    (_CARD_KW, frozenset({B.CREDIT_CARD, B.PCI_PAN, B.PCI_TRACK})),
    (_CVV_KW, frozenset({B.PCI_CVV})),
    (_EXPIRY_KW, frozenset({B.PCI_EXPIRY})),
    (_BIRTH_KW, frozenset({B.HIPAA_DOB})),
    (_IBAN_KW, frozenset({B.GDPR_IBAN, B.HIPAA_ACCOUNT})),
    (_PASSPORT_KW, frozenset({B.GDPR_PASSPORT})),
    # Remote classifier labels for names and addresses
    (_NAME_KW, frozenset({
        CustomCategory("FULL_NAME"), CustomCategory("FIRST_NAME"), CustomCategory("LAST_NAME"),
    })),
    (_ADDRESS_KW, frozenset({CustomCategory("ADDRESS"), CustomCategory("STREET_ADDRESS")})),
)

_KIND_EXPECTATIONS: dict[FieldKind, frozenset[Category]] = {
    FieldKind.EMAIL: frozenset({B.EMAIL}),
    FieldKind.TEL: frozenset({B.PHONE}),
    FieldKind.PASSWORD: frozenset({B.PASSWORD}) | _CREDENTIALS,
}


def _haystack(field: FieldDescriptor) -> str:
    """Lower-cased hint text with camelCase and snake_case split into words."""
    text = " ".join(p for p in (field.name, field.placeholder, field.label, field.title) if p)
    text = _CAMEL.sub(r"\1 \2", text)
    text = _SEPARATORS.sub(" ", text)
    return " ".join(text.lower().split())


def expected_categories(field: FieldDescriptor | None) -> set[Category]:
    """Categories this field was designed to collect."""
    if field is None:
        return set()
    expected: set[Category] = set(_KIND_EXPECTATIONS.get(field.kind, ()))
    hay = _haystack(field)
    if hay:
        for keywords, categories in _KEYWORD_EXPECTATIONS:
            if keywords.search(hay):
                expected |= categories
    return expected


def coarse_kind(field: FieldDescriptor | None) -> str:
    """Semantic field kind for the remote classifier: name, email, address, phone, freeform, unknown."""
    if field is None:
        return "unknown"
    hay = _haystack(field)
    if field.kind is FieldKind.EMAIL or _EMAIL_KW.search(hay):
        return "email"
    if field.kind is FieldKind.TEL or _PHONE_KW.search(hay):
        return "phone"
    if _NAME_KW.search(hay):
        return "name"
    if _ADDRESS_KW.search(hay):
        return "address"
    if field.kind is FieldKind.TEXT:
        return "freeform"
    return "unknown"


def filter_expected(spans: Iterable[Span], expected: set[Category]) -> list[Span]:
    """Drop exactly the spans whose category is expected."""
    if not expected:
        return list(spans)
    return [s for s in spans if s.category not in expected]
