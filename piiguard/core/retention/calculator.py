from __future__ import annotations

import copy
import datetime as dt
import inspect
import logging
from typing import Any, Dict, List, Optional

from piiguard.core.clock import Clock, SystemClock, iso_utc
from piiguard.core.config.models import DataProtectionConfig
from piiguard.core.errors import ValidationError
from piiguard.core.logger import get_logger
from piiguard.core.pii.models import Classification, PiiCategory
from piiguard.core.retention.defaults import (
    DEFAULT_RULE_PACK,
    FLOOR_AUTOMATIC_DELETION,
    FLOOR_LEGAL_BASIS,
    FLOOR_RETENTION_DAYS,
    default_retention_periods,
)
from piiguard.core.retention.models import (
    EXPIRY_EXTENDED,
    EXPIRY_IMMEDIATE,
    EXPIRY_NOT_APPLICABLE,
    AuditAction,
    DeletionOutcome,
    DeletionReason,
    DeletionRequest,
    DeletionResult,
    RetentionAudit,
    RetentionExpiry,
    RetentionMetadata,
    RetentionPeriod,
    RetentionPolicyRepository,
)


LEGAL_HOLD_BASIS = "Legal hold active"
ERASURE_BASIS = "Article 17 - Right to erasure"
MINIMIZATION_BASIS = "Data minimization principle (Article 5(1)(c))"

ANONYMIZATION_METHOD = "field_replacement"
ANONYMIZATION_PRESERVED_FIELDS = ["id", "createdAt", "tenantId"]


def _to_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class RetentionCalculator:
    """
    Retention windows, expiry checks and deletion/anonymization audit records.

    The longest applicable window wins, and its legal basis and auto-deletion flag come
    with it wholesale (ties keep the earlier selection). A configured repository replaces
    the built-in defaults for the lookup; `update_retention_period` only touches this
    instance's copy of those defaults.
    """

    def __init__(
        self,
        repository: Optional[RetentionPolicyRepository] = None,
        clock: Optional[Clock] = None,
        rule_pack: str = DEFAULT_RULE_PACK,
        logger: Optional[logging.Logger] = None,
        event_logger: Any = None,
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.rule_pack = rule_pack
        self.logger = logger or get_logger("retention")
        self.event_logger = event_logger
        self._defaults: List[RetentionPeriod] = default_retention_periods()

    @classmethod
    def from_config(cls, cfg: DataProtectionConfig, **kwargs: Any) -> RetentionCalculator:
        return cls(rule_pack=cfg.rule_pack, **kwargs)

    # ---- periods ----
    async def _periods(self, tenant_id: Optional[str], domain: Optional[str]) -> List[RetentionPeriod]:
        if self.repository is None:
            return self._defaults
        rows = self.repository.get_retention_periods(tenant_id, domain)
        if inspect.isawaitable(rows):
            rows = await rows
        return [r if isinstance(r, RetentionPeriod) else RetentionPeriod.model_validate(r) for r in rows or []]

    def get_retention_periods(self) -> List[RetentionPeriod]:
        return [p.model_copy() for p in self._defaults]

    def update_retention_period(self, category: PiiCategory, retention_days: int, legal_basis: str) -> None:
        if isinstance(retention_days, bool) or not isinstance(retention_days, int) or retention_days < 1:
            raise ValidationError("retention_days must be a positive integer.", retention_days=retention_days)
        if not legal_basis:
            raise ValidationError("legal_basis is required.")
        category = PiiCategory(category)
        for i, p in enumerate(self._defaults):
            if p.category == category:
                self._defaults[i] = p.model_copy(update={"retention_days": retention_days, "legal_basis": legal_basis})
        self.logger.info("retention period updated category=%s days=%d", category.value, retention_days)

    # ---- expiry ----
    async def calculate_expiry(
        self,
        classification: Classification,
        tenant_id: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> RetentionExpiry:
        periods = await self._periods(tenant_id, domain)
        by_category: Dict[PiiCategory, RetentionPeriod] = {}
        for p in periods:
            by_category.setdefault(p.category, p)

        days = FLOOR_RETENTION_DAYS
        basis = FLOOR_LEGAL_BASIS
        auto_delete = FLOOR_AUTOMATIC_DELETION
        for category in classification.pii_categories:
            p = by_category.get(category)
            if p is not None and p.retention_days > days:
                days = p.retention_days
                basis = p.legal_basis
                auto_delete = p.automatic_deletion

        return RetentionExpiry(
            expiry=_to_utc(self.clock.now()) + dt.timedelta(days=days),
            retention_days=days,
            legal_basis=basis,
            automatic_deletion=auto_delete,
            rule_pack=self.rule_pack,
        )

    async def is_expired(
        self,
        created_at: dt.datetime,
        classification: Classification,
        now: Optional[dt.datetime] = None,
        tenant_id: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> bool:
        retention = await self.calculate_expiry(classification, tenant_id, domain)
        expires_at = _to_utc(created_at) + dt.timedelta(days=retention.retention_days)
        current = _to_utc(now if now is not None else self.clock.now())
        return current > expires_at

    async def generate_retention_metadata(self, classification: Classification, context: Dict[str, Any]) -> RetentionMetadata:
        """
        Expiry and a `created` audit record for newly stored data.
        context: tenant_id, user_id, entity_type, entity_id, domain
        """
        retention = await self.calculate_expiry(classification, context.get("tenant_id"), context.get("domain"))
        expiry = iso_utc(retention.expiry)
        audit = RetentionAudit(
            tenant_id=str(context.get("tenant_id") or ""),
            entity_id=str(context.get("entity_id") or ""),
            entity_type=str(context.get("entity_type") or ""),
            domain=str(context.get("domain") or ""),
            action=AuditAction.CREATED,
            retention_expiry=expiry,
            legal_basis=retention.legal_basis,
            performed_by=str(context.get("user_id") or ""),
            timestamp=iso_utc(self.clock.now()),
            rule_pack=retention.rule_pack,
            metadata={
                "pii_categories": [c.value for c in classification.pii_categories],
                "sensitive_fields": list(classification.sensitive_fields),
                "retention_days": retention.retention_days,
                "confidentiality_level": classification.confidentiality_level.value,
                "requires_encryption": classification.requires_encryption,
            },
        )
        return RetentionMetadata(
            retention_expiry=expiry,
            legal_basis=retention.legal_basis,
            automatic_deletion=retention.automatic_deletion,
            audit_record=audit,
        )

    # ---- deletion / anonymization ----
    def process_deletion(self, request: DeletionRequest, *, trace_id: str = "") -> DeletionResult:
        """
        Right-to-erasure handling. Legal hold always wins; a legal_requirement reason retains;
        everything else deletes. Never anonymizes.
        """
        self.logger.info(
            "processing deletion request entity=%s domain=%s reason=%s legal_hold=%s",
            request.entity_id,
            request.domain,
            request.reason.value,
            request.legal_hold,
        )
        original = request.model_dump(mode="json")

        if request.legal_hold:
            outcome = DeletionOutcome.RETAINED
            reason: Optional[str] = "Data retention required due to active legal hold"
            audit = self._audit(
                request,
                action=AuditAction.UPDATED,
                retention_expiry=EXPIRY_EXTENDED,
                legal_basis=LEGAL_HOLD_BASIS,
                metadata={
                    "deletion_reason": request.reason.value,
                    "original_request": original,
                    "processing_outcome": outcome.value,
                    "legal_hold_active": True,
                },
            )
        else:
            retained = request.reason == DeletionReason.LEGAL_REQUIREMENT
            outcome = DeletionOutcome.RETAINED if retained else DeletionOutcome.DELETED
            reason = "Data retention required by legal obligation" if retained else None
            audit = self._audit(
                request,
                action=AuditAction.UPDATED if retained else AuditAction.DELETED,
                retention_expiry=EXPIRY_EXTENDED if retained else EXPIRY_IMMEDIATE,
                legal_basis=ERASURE_BASIS,
                metadata={
                    "deletion_reason": request.reason.value,
                    "original_request": original,
                    "processing_outcome": outcome.value,
                },
            )

        if self.event_logger is not None:
            self.event_logger.log(
                trace_id=trace_id,
                event="retention.deletion",
                outcome=outcome.value,
                details={
                    "tenant_id": request.tenant_id,
                    "entity_id": request.entity_id,
                    "domain": request.domain,
                    "reason": request.reason.value,
                    "legal_hold": request.legal_hold,
                },
            )
        return DeletionResult(success=True, action=outcome, reason=reason, audit_record=audit)

    def anonymize_expired(self, entity_id: str, entity_type: str, tenant_id: str, domain: str, *, trace_id: str = "") -> RetentionAudit:
        now = iso_utc(self.clock.now())
        audit = RetentionAudit(
            tenant_id=tenant_id,
            entity_id=entity_id,
            entity_type=entity_type,
            domain=domain,
            action=AuditAction.ANONYMIZED,
            retention_expiry=EXPIRY_NOT_APPLICABLE,
            legal_basis=MINIMIZATION_BASIS,
            performed_by="system",
            timestamp=now,
            rule_pack=self.rule_pack,
            metadata={
                "anonymization_method": ANONYMIZATION_METHOD,
                "preserved_fields": list(ANONYMIZATION_PRESERVED_FIELDS),
                "anonymization_date": now,
            },
        )
        self.logger.info("data anonymized entity=%s type=%s domain=%s", entity_id, entity_type, domain)
        if self.event_logger is not None:
            self.event_logger.log(
                trace_id=trace_id,
                event="retention.anonymized",
                details={"tenant_id": tenant_id, "entity_id": entity_id, "entity_type": entity_type, "domain": domain},
            )
        return audit

    def _audit(
        self,
        request: DeletionRequest,
        *,
        action: AuditAction,
        retention_expiry: str,
        legal_basis: str,
        metadata: Dict[str, Any],
    ) -> RetentionAudit:
        return RetentionAudit(
            tenant_id=request.tenant_id,
            entity_id=request.entity_id,
            entity_type=request.entity_type,
            domain=request.domain,
            action=action,
            retention_expiry=retention_expiry,
            legal_basis=legal_basis,
            performed_by=request.requested_by,
            timestamp=iso_utc(self.clock.now()),
            rule_pack=self.rule_pack,
            metadata=copy.deepcopy(metadata),
        )
