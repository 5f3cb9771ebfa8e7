from __future__ import annotations

from piiguard.core.policy.models import KeywordPack


# Universal keywords only; domain-specific terms belong in registered bundles.
DEFAULT_BASELINE = KeywordPack(
    include=[
        "email",
        "phone",
        "mobile",
        "address",
        "street",
        "city",
        "postal",
        "contact",
        "iban",
        "swift",
        "card",
        "credit",
        "debit",
        "bank",
        "salary",
        "tax",
        "payment",
        "medical",
        "health",
        "diagnosis",
        "treatment",
        "patient",
        "race",
        "ethnicity",
        "religion",
        "political",
        "biometric",
        "fingerprint",
    ]
)
