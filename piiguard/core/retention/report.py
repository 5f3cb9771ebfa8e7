from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from piiguard.core.logger import get_logger
from piiguard.core.pii.models import PiiCategory
from piiguard.core.retention.models import AuditAction, RetentionAudit, RetentionReport, RetentionReportSummary


def build_retention_report(
    audits: Iterable[RetentionAudit],
    domain: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> RetentionReport:
    """
    Compliance summary over caller-supplied audit records, optionally for one domain.

    Entities are counted by (tenant_id, entity_id). An entity is expired once any of its
    audits is a deletion or an anonymization. Category counts come from `created` audits.
    """
    trail: List[RetentionAudit] = [a for a in audits if domain is None or a.domain == domain]

    entities = set()
    expired = set()
    deleted = set()
    anonymized = set()
    by_category: Dict[str, int] = {c.value: 0 for c in PiiCategory}
    by_domain: Dict[str, int] = {}
    seen_per_domain: Dict[str, set] = {}

    for a in trail:
        ident = (a.tenant_id, a.entity_id)
        entities.add(ident)
        bucket = seen_per_domain.setdefault(a.domain, set())
        if ident not in bucket:
            bucket.add(ident)
            by_domain[a.domain] = by_domain.get(a.domain, 0) + 1

        if a.action == AuditAction.DELETED:
            deleted.add(ident)
            expired.add(ident)
        elif a.action == AuditAction.ANONYMIZED:
            anonymized.add(ident)
            expired.add(ident)
        elif a.action == AuditAction.CREATED:
            for c in a.metadata.get("pii_categories") or []:
                if c in by_category:
                    by_category[c] += 1

    report = RetentionReport(
        summary=RetentionReportSummary(
            total_entities=len(entities),
            expired_entities=len(expired),
            deleted_entities=len(deleted),
            anonymized_entities=len(anonymized),
        ),
        by_category=by_category,
        by_domain=by_domain,
        audit_trail=trail,
    )
    (logger or get_logger("retention")).info(
        "generated retention report domain=%s entities=%d expired=%d",
        domain or "*",
        report.summary.total_entities,
        report.summary.expired_entities,
    )
    return report
