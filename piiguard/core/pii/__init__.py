from __future__ import annotations

"""
PII classification and field-level protection.

This package provides:
- classification of structured records (path rules, field hints, keywords, value patterns)
- protection transforms (mask, hash, encrypt, pseudonymize, anonymize) and restore
- an irreversible log mask and value-free compliance metadata

Raw values never reach logs or dumps.
"""
