from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_RULE_PACK = "retention-defaults@1.1.0"
HIGH_SECURITY_KEY_ID = "high-security-key"


class DataProtectionConfig(BaseModel):
    """
    Data protection settings (pii.json and/or SECURITY_PII_* environment).

    Secrets are optional at load time: the key provider fails when encryption is
    attempted without one, so classification-only deployments need no secret.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    encryption_key: Optional[str] = Field(default=None, min_length=32, repr=False)
    pseudonymization_salt: str = Field(default="", max_length=256, repr=False)
    high_security_key_id: str = Field(default=HIGH_SECURITY_KEY_ID, min_length=1, max_length=80)
    rule_pack: str = Field(default=DEFAULT_RULE_PACK, min_length=1, max_length=80)
    policy_file: Optional[str] = Field(default=None, max_length=512)
