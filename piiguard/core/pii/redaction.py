from __future__ import annotations

"""
Log-safe redaction of classified records.

This layer is stricter than protection:
- always irreversible; never touches keys, ciphers or pseudonym salts
- keeps only enough shape to make a log line readable
"""

import copy
import re
from typing import Any

from piiguard.core.pii.models import Classification
from piiguard.core.pii.paths import format_path, parse_path, set_at


_DIGITS_ONLY = re.compile(r"\A\d+\Z", re.ASCII)


def create_log_mask(value: str, field_name: str) -> str:
    if "@" in value:
        # email: keep domain, drop local part
        return "***@" + value.split("@")[1]
    if _DIGITS_ONLY.match(value) and len(value) >= 8:
        return "***" + value[-4:]
    if len(value) > 10:
        return value[0] + "***" + value[-1]
    return f"[{(field_name or 'VALUE').upper()}_REDACTED]"


def mask_for_log(record: Any, classification: Classification) -> Any:
    """
    Irreversibly masked deep copy of `record`, safe for log lines and command payload dumps.
    """
    if not classification.contains_pii:
        return record
    masked = copy.deepcopy(record)
    for m in classification.matches:
        segments = m.segments or parse_path(m.path)
        masked = set_at(masked, segments, create_log_mask(m.value, m.field_name))
    return masked


def describe_matches(classification: Classification) -> list:
    """
    Value-free view of the matches (path, categories, detector, confidence).
    """
    return [
        {
            "path": m.path or format_path(m.segments),
            "categories": [c.value for c in m.categories],
            "detector": m.detector.value,
            "confidence": m.confidence,
        }
        for m in classification.matches
    ]
