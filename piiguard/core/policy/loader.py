from __future__ import annotations

from typing import Tuple

from pydantic import ValidationError

from piiguard.core.config.io import read_json_file
from piiguard.core.config.models import DataProtectionConfig
from piiguard.core.logger import get_logger
from piiguard.core.policy.models import PolicyFile
from piiguard.core.policy.provider import PolicyRegistry


def load_policy_file(path: str) -> Tuple[PolicyFile, bool, str]:
    """
    Returns (cfg, failsafe, error_message).
    If the file is missing or invalid, returns an empty policy set and failsafe=True;
    classification then falls back to the baseline keywords for every domain.
    """
    try:
        res = read_json_file(path)
        if not res.ok:
            raise ValueError(f"policy file unreadable: {res.error}")
        raw = res.data
        if "schema_version" not in raw:
            raise ValueError("policy file missing schema_version.")
        try:
            expected = int(PolicyFile().schema_version)
            schema_version = int(raw.get("schema_version"))
        except (TypeError, ValueError) as e:
            raise ValueError("policy file schema_version must be an integer.") from e
        if schema_version != expected:
            raise ValueError(f"policy file schema_version mismatch (expected {expected}).")
        cfg = PolicyFile.model_validate(raw)
        return cfg, False, ""
    except (ValueError, ValidationError) as e:
        return PolicyFile(), True, str(e)


def register_policies(registry: PolicyRegistry, cfg: PolicyFile) -> int:
    for bundle in cfg.policies:
        registry.register_domain_policy(bundle)
    return len(cfg.policies)


def load_configured_policies(registry: PolicyRegistry, cfg: DataProtectionConfig) -> Tuple[int, bool, str]:
    """
    Register the bundles from `cfg.policy_file`, if one is configured.
    Returns (registered, failsafe, error_message); no file configured is (0, False, "").
    """
    if not cfg.policy_file:
        return 0, False, ""
    policies, failsafe, err = load_policy_file(cfg.policy_file)
    if failsafe:
        get_logger("policy").warning("policy file rejected, using baseline keywords path=%s error=%s", cfg.policy_file, err)
    return register_policies(registry, policies), failsafe, err
