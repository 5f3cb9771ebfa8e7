from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from piiguard.core.config.io import read_json_file
from piiguard.core.config.models import DataProtectionConfig
from piiguard.core.errors import ConfigError


ENV_FIELDS: Dict[str, str] = {
    "SECURITY_PII_ENCRYPTION_KEY": "encryption_key",
    "SECURITY_PII_PSEUDONYMIZATION_SALT": "pseudonymization_salt",
    "SECURITY_PII_HIGH_SECURITY_KEY_ID": "high_security_key_id",
    "SECURITY_PII_RULE_PACK": "rule_pack",
    "SECURITY_PII_POLICY_FILE": "policy_file",
}


def load_data_protection_config(*, environ: Optional[Mapping[str, str]] = None, path: Optional[str] = None) -> DataProtectionConfig:
    """
    File values (optional JSON object) are overlaid by SECURITY_PII_* environment variables.
    A missing file is not an error; an unreadable or invalid one is.
    """
    env = environ if environ is not None else os.environ
    raw: Dict[str, Any] = {}
    if path:
        res = read_json_file(path)
        if not res.ok and res.error != "missing":
            raise ConfigError("Data protection config file is unreadable.", path=path, error=res.error or "")
        raw.update(res.data)
    for env_name, field_name in ENV_FIELDS.items():
        val = env.get(env_name)
        if val:
            raw[field_name] = val
    try:
        return DataProtectionConfig.model_validate(raw)
    except PydanticValidationError as e:
        # field names only: values may be secrets
        fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in e.errors()})
        raise ConfigError("Data protection config is invalid.", fields=fields) from e
