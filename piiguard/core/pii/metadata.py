from __future__ import annotations

"""
Audit-friendly summaries of classification and protection runs.

Both builders are value-free: only flags, counts, paths and strategy names leave here.
"""

from typing import Any, Dict, Optional, Sequence

from piiguard.core.clock import Clock, SystemClock, iso_utc
from piiguard.core.pii.models import Classification, PiiCategory, ProtectionResult


PROTECTION_PURPOSE = "data_protection_compliance"
COMPLIANCE_FRAMEWORKS = ["GDPR_Article_32", "HIPAA_Security_Rule"]


def generate_compliance_metadata(
    classification: Classification,
    context: Optional[Dict[str, Any]] = None,
    clock: Optional[Clock] = None,
) -> Dict[str, Any]:
    ctx = context or {}
    clock = clock or SystemClock()
    return {
        "timestamp": iso_utc(clock.now()),
        "domain": ctx.get("domain"),
        "entity_type": ctx.get("entity_type"),
        "operation": ctx.get("operation"),
        "user_id": ctx.get("user_id"),
        "tenant_id": ctx.get("tenant_id"),
        "contains_pii": classification.contains_pii,
        "pii_categories": [c.value for c in classification.pii_categories],
        "sensitive_fields": list(classification.sensitive_fields),
        "confidentiality_level": classification.confidentiality_level.value,
        "risk_score": classification.risk_score,
        "gdpr_applicable": classification.gdpr_applicable,
        "hipaa_applicable": classification.hipaa_applicable,
        "popia_applicable": classification.popia_applicable,
        "compliance_requirements": {
            "encryption_required": classification.requires_encryption,
            "audit_trail_required": True,
            "retention_policy_required": classification.contains_pii,
            "consent_required": PiiCategory.SENSITIVE in classification.pii_categories,
        },
    }


def generate_protection_audit(
    results: Sequence[ProtectionResult],
    context: Optional[Dict[str, Any]] = None,
    clock: Optional[Clock] = None,
) -> Dict[str, Any]:
    """
    Summary of a protect() log for the caller's audit store.
    """
    ctx = context or {}
    clock = clock or SystemClock()
    strategies = []
    for r in results:
        if r.strategy.value not in strategies:
            strategies.append(r.strategy.value)
    return {
        "timestamp": iso_utc(clock.now()),
        "user_id": ctx.get("user_id"),
        "tenant_id": ctx.get("tenant_id"),
        "operation": ctx.get("operation"),
        "domain": ctx.get("domain") or "unknown",
        "entity_type": ctx.get("entity_type") or "unknown",
        "protected_fields": len(results),
        "protected_paths": [r.path for r in results],
        "strategies": strategies,
        "reversible_fields": sum(1 for r in results if r.reversible),
        "purpose": PROTECTION_PURPOSE,
        "compliance_frameworks": list(COMPLIANCE_FRAMEWORKS),
    }
