from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from piiguard.core.pii.models import PiiCategory


class DeletionReason(str, Enum):
    RETENTION_EXPIRED = "retention_expired"
    USER_REQUEST = "user_request"
    LEGAL_REQUIREMENT = "legal_requirement"


class AuditAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ANONYMIZED = "anonymized"


class DeletionOutcome(str, Enum):
    DELETED = "deleted"
    ANONYMIZED = "anonymized"
    RETAINED = "retained"


# retention_expiry markers used instead of a timestamp
EXPIRY_EXTENDED = "extended"
EXPIRY_IMMEDIATE = "immediate"
EXPIRY_NOT_APPLICABLE = "n/a"


class RetentionPeriod(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: PiiCategory
    retention_days: int = Field(ge=1)
    legal_basis: str
    automatic_deletion: bool
    requires_user_consent: bool = False


class RetentionExpiry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    expiry: dt.datetime
    retention_days: int
    legal_basis: str
    automatic_deletion: bool
    rule_pack: str


class DeletionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant_id: str
    entity_id: str
    entity_type: str
    domain: str
    reason: DeletionReason
    requested_by: str
    timestamp: str
    legal_hold: bool = False


class RetentionAudit(BaseModel):
    """
    One retention lifecycle event. `retention_expiry` is an ISO timestamp or one of
    the markers extended / immediate / n/a.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant_id: str
    entity_id: str
    entity_type: str
    domain: str
    action: AuditAction
    retention_expiry: str
    legal_basis: str
    performed_by: str
    timestamp: str
    rule_pack: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DeletionResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    success: bool
    action: DeletionOutcome
    reason: Optional[str] = None
    audit_record: RetentionAudit


class RetentionMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    retention_expiry: str
    legal_basis: str
    automatic_deletion: bool
    audit_record: RetentionAudit


PeriodRows = Sequence[Union[RetentionPeriod, Dict[str, Any]]]


class RetentionPolicyRepository(Protocol):
    """
    Tenant/domain retention periods. May be sync or async; failures propagate to the caller.
    """

    def get_retention_periods(
        self, tenant_id: Optional[str] = None, domain: Optional[str] = None
    ) -> Union[PeriodRows, Awaitable[PeriodRows]]: ...


class RetentionReportSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_entities: int = 0
    expired_entities: int = 0
    deleted_entities: int = 0
    anonymized_entities: int = 0


class RetentionReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    summary: RetentionReportSummary
    by_category: Dict[str, int]
    by_domain: Dict[str, int]
    audit_trail: List[RetentionAudit] = Field(default_factory=list)
