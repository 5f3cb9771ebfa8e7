from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PiiCategory(str, Enum):
    """
    Keep these stable: they are keys in retention periods and audit metadata.
    """

    PERSONAL_IDENTIFIER = "personal_identifier"  # names, ids, SSN
    CONTACT_INFO = "contact_info"  # email, phone, address
    FINANCIAL = "financial"  # account numbers, cards
    HEALTH = "health"  # medical records
    SENSITIVE = "sensitive"  # race, religion, political views, biometrics


class ConfidentialityLevel(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


class DetectorKind(str, Enum):
    PATH_RULE = "path_rule"
    FIELD_NAME = "field_name"
    PATTERN = "pattern"


class ProtectionStrategy(str, Enum):
    NONE = "none"
    MASK = "mask"
    HASH = "hash"
    ENCRYPT = "encrypt"
    ANONYMIZE = "anonymize"
    PSEUDONYMIZE = "pseudonymize"


PathSegment = Union[int, str]


class MatchDetail(BaseModel):
    """
    One flagged leaf.

    `value` is the raw leaf and is excluded from dumps and repr; it exists only so the
    protection engine can work from the classification without re-walking the record.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    field_name: str
    value: str = Field(exclude=True, repr=False)
    categories: List[PiiCategory] = Field(min_length=1)
    detector: DetectorKind
    confidence: float = Field(ge=0.0, le=1.0)
    segments: List[PathSegment] = Field(default_factory=list, exclude=True, repr=False)


class Classification(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    contains_pii: bool
    sensitive_fields: List[str] = Field(default_factory=list)
    pii_categories: List[PiiCategory] = Field(default_factory=list)
    confidentiality_level: ConfidentialityLevel = ConfidentialityLevel.PUBLIC
    requires_encryption: bool = False
    gdpr_applicable: bool = False
    hipaa_applicable: bool = False
    popia_applicable: bool = False
    risk_score: float = Field(default=0.0, ge=0.0, le=1.0)
    matches: List[MatchDetail] = Field(default_factory=list)


class ProtectionResult(BaseModel):
    """
    Log entry for one protected field. `original_value` is ephemeral: never dumped, never
    shown in repr, and must not be persisted by callers.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = ""
    original_value: str = Field(exclude=True, repr=False)
    protected_value: str
    strategy: ProtectionStrategy
    key_id: Optional[str] = None
    reversible: bool
    timestamp: dt.datetime
    segments: List[PathSegment] = Field(default_factory=list, exclude=True, repr=False)


class ProtectedRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data: Any
    log: List[ProtectionResult] = Field(default_factory=list)


class UnsupportedReversal(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    strategy: ProtectionStrategy
    reason: str


class RestoreResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data: Any
    restored: List[str] = Field(default_factory=list)
    unsupported: List[UnsupportedReversal] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)  # logged paths no longer holding their protected value
