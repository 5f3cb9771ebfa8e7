from __future__ import annotations

"""
Format-aware masking for the MASK protection strategy.

Deterministic but never reversible: nothing here keeps enough of the input to rebuild it.
"""

from piiguard.core.pii.patterns import ACCOUNT_NUMBER, EMAIL, PHONE_US, only_digits


def is_email(value: str) -> bool:
    return EMAIL.search(value) is not None


def is_phone(value: str) -> bool:
    return PHONE_US.search(value) is not None


def is_account_number(value: str) -> bool:
    return ACCOUNT_NUMBER.search(value) is not None


def mask_email(email: str) -> str:
    local, sep, domain = email.partition("@")
    if not sep or not domain:
        return "[REDACTED]"
    masked_local = "*" if len(local) <= 1 else f"{local[0]}***"
    return f"{masked_local}@{domain}"


def mask_last4_digits(value: str) -> str:
    """
    Digits become '*' except the last four; separators and other characters stay put.
    "415-555-0134" -> "***-***-0134"
    """
    digits = only_digits(value)
    if len(digits) < 4:
        return "[REDACTED]"
    keep_from = len(digits) - 4
    seen = 0
    out = []
    for ch in value:
        if "0" <= ch <= "9":
            out.append(ch if seen >= keep_from else "*")
            seen += 1
        else:
            out.append(ch)
    return "".join(out)


def mask_generic(value: str) -> str:
    # first/last character only above length 4
    if len(value) <= 4:
        return "*" * len(value)
    return value[0] + "*" * (len(value) - 2) + value[-1]


def mask_value(value: str, preserve_format: bool = True) -> str:
    if not preserve_format:
        return "*" * min(len(value), 8)
    if is_email(value):
        return mask_email(value)
    if is_phone(value) or is_account_number(value):
        return mask_last4_digits(value)
    return mask_generic(value)
