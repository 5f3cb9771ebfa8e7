from __future__ import annotations

"""
Value pattern detectors.

All patterns are ASCII-only (\\d, \\b and \\s never match non-ASCII) and are applied
with `search`, so they match anywhere in the value unless anchored.
"""

import ipaddress
import re
from typing import Callable, Dict, List

from piiguard.core.pii.models import PiiCategory


_A = re.ASCII

EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", _A | re.IGNORECASE)
PHONE_E164 = re.compile(r"\A\+?[1-9]\d{7,14}\Z", _A)
PHONE_US = re.compile(r"(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}", _A)
IPV4 = re.compile(r"\b(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)\b", _A)
IPV6_CANDIDATE = re.compile(r"[0-9A-Fa-f:]{2,39}", _A)
SSN_US = re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b", _A)
CREDIT_CANDIDATE = re.compile(r"\b(?:\d[ -]?){13,19}\b", _A)
BANK_ACCOUNT = re.compile(r"\b\d{8,17}\b", _A)
ZIP_US = re.compile(r"\b\d{5}(?:-\d{4})?\b", _A)
MEDICAL_ID = re.compile(r"\b(?:MRN|MR|PATIENT)\s*[:#]?\s*\d+\b", _A | re.IGNORECASE)
DRIVING_LICENSE = re.compile(r"\b[A-Z]{1,3}\d{6,10}\b", _A)
PASSPORT = re.compile(r"\b[A-Z]\d{8}\b", _A)

# 16-digit card layout used by the masking helpers
ACCOUNT_NUMBER = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b", _A)

_LUHN_DIGITS = re.compile(r"\A\d{13,19}\Z", _A)
_NON_DIGIT = re.compile(r"\D", _A)


def only_digits(value: str) -> str:
    return _NON_DIGIT.sub("", value)


def passes_luhn(card_number: str) -> bool:
    if not _LUHN_DIGITS.match(card_number):
        return False
    total = 0
    alternate = False
    for ch in reversed(card_number):
        digit = int(ch)
        if alternate:
            digit *= 2
            if digit > 9:
                digit = digit // 10 + digit % 10
        total += digit
        alternate = not alternate
    return total % 10 == 0


def _has_ipv6(value: str) -> bool:
    for cand in IPV6_CANDIDATE.findall(value):
        if cand.count(":") < 2:
            continue
        try:
            ipaddress.IPv6Address(cand)
            return True
        except ValueError:
            continue
    return False


def _has_credit_card(value: str) -> bool:
    return CREDIT_CANDIDATE.search(value) is not None and passes_luhn(only_digits(value))


def _search(rx: re.Pattern[str]) -> Callable[[str], bool]:
    return lambda value: rx.search(value) is not None


# Fixed detector table; order is the reporting order of detect_patterns.
DETECTORS: Dict[str, Callable[[str], bool]] = {
    "email": _search(EMAIL),
    "phone_e164": _search(PHONE_E164),
    "phone_us": _search(PHONE_US),
    "ipv4": _search(IPV4),
    "ipv6": _has_ipv6,
    "ssn_us": _search(SSN_US),
    "credit_card": _has_credit_card,
    "bank_account": _search(BANK_ACCOUNT),
    "zip_us": _search(ZIP_US),
    "medical_id": _search(MEDICAL_ID),
    "driving_license": _search(DRIVING_LICENSE),
    "passport": _search(PASSPORT),
}


def detect_patterns(value: str) -> List[str]:
    return [name for name, check in DETECTORS.items() if check(value)]


# Category corroboration: which detected patterns imply which category.
PATTERN_CATEGORIES: Dict[PiiCategory, frozenset] = {
    PiiCategory.PERSONAL_IDENTIFIER: frozenset({"ssn_us", "passport"}),
    PiiCategory.CONTACT_INFO: frozenset({"email", "phone_us", "phone_e164"}),
    PiiCategory.FINANCIAL: frozenset({"bank_account", "credit_card"}),
    PiiCategory.HEALTH: frozenset({"medical_id"}),
    PiiCategory.SENSITIVE: frozenset(),
}

FIELD_TERMS: Dict[PiiCategory, tuple] = {
    PiiCategory.PERSONAL_IDENTIFIER: ("name", "firstname", "lastname", "ssn", "id", "passport"),
    PiiCategory.CONTACT_INFO: ("email", "phone", "mobile", "address", "street", "city", "postal", "contact"),
    PiiCategory.FINANCIAL: ("account", "card", "bank", "financial", "payment", "salary", "iban", "swift", "credit", "debit", "tax"),
    PiiCategory.HEALTH: ("medical", "health", "patient", "diagnosis", "treatment"),
    PiiCategory.SENSITIVE: ("race", "ethnicity", "religion", "political", "sexual", "biometric", "fingerprint"),
}


def categorize(field_name: str, detected: List[str]) -> List[PiiCategory]:
    """
    Categories for a flagged field, independent of which detector flagged it.
    Returned in PiiCategory declaration order.
    """
    lower = field_name.lower()
    found = set(detected)
    out: List[PiiCategory] = []
    for category in PiiCategory:
        if any(term in lower for term in FIELD_TERMS[category]) or found & PATTERN_CATEGORIES[category]:
            out.append(category)
    return out
