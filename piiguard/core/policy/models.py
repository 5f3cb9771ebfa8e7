from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from piiguard.core.pii.models import PiiCategory


class RuleAction(str, Enum):
    PII = "pii"
    NONPII = "nonpii"


class KeywordPack(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    include: List[str] = Field(default_factory=list)  # extra keywords considered PII
    exclude: Optional[List[str]] = None  # keywords removed from the baseline


class FieldHints(BaseModel):
    """
    Explicit field paths; beat keyword heuristics but not path rules.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    pii_fields: Optional[List[str]] = None  # e.g. ["customer.name", "profile.dob"]
    non_pii_fields: Optional[List[str]] = None


class PathRule(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    match: str = Field(min_length=1, max_length=512)  # glob: *, [*], **
    action: RuleAction
    category: Optional[PiiCategory] = None  # pii only; defaults to personal_identifier


class PolicyBundle(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str = Field(min_length=1, max_length=128)  # e.g. "entity", "payment-hub"
    tenant: Optional[str] = Field(default=None, max_length=128)
    keywords: KeywordPack = Field(default_factory=KeywordPack)
    field_hints: Optional[FieldHints] = None
    rules: Optional[List[PathRule]] = None
    # advisory per-category strategies; not consulted by ProtectionEngine.protect
    protection: Optional[Dict[str, Literal["mask", "encrypt", "pseudonymize"]]] = None


class PolicyFile(BaseModel):
    """
    Domain policy file schema (e.g. config/pii_policies.json).
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=1, ge=1, le=10)
    policies: List[PolicyBundle] = Field(default_factory=list)
