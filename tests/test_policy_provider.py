from __future__ import annotations

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from piiguard.core.policy.defaults import DEFAULT_BASELINE
from piiguard.core.policy.loader import load_policy_file, register_policies
from piiguard.core.policy.models import KeywordPack, PathRule, PolicyBundle, RuleAction
from piiguard.core.policy.provider import PolicyProvider, PolicyRegistry


def test_unregistered_domain_gets_baseline_only():
    p = PolicyProvider(registry=PolicyRegistry()).get_policy("orders")
    assert p.domain == "orders"
    assert p.keywords.include == DEFAULT_BASELINE.include
    assert p.field_hints is None
    assert p.rules is None
    assert p.protection is None


def test_merge_is_union_minus_exclude_baseline_first():
    reg = PolicyRegistry()
    reg.register_domain_policy(
        PolicyBundle(domain="hr", keywords=KeywordPack(include=["nationalid", "email"], exclude=["city"]))
    )
    p = PolicyProvider(registry=reg).get_policy("hr")
    inc = p.keywords.include
    assert inc[0] == "email"
    assert inc[-1] == "nationalid"
    assert inc.count("email") == 1
    assert "city" not in inc


def test_hints_rules_and_protection_pass_through():
    rules = [PathRule(match="employee.badge", action=RuleAction.NONPII)]
    reg = PolicyRegistry()
    reg.register_domain_policy(PolicyBundle(domain="hr", rules=rules, protection={"financial": "encrypt"}))
    p = PolicyProvider(registry=reg).get_policy("hr")
    assert p.rules == rules
    assert p.protection == {"financial": "encrypt"}


def test_last_write_wins():
    reg = PolicyRegistry()
    reg.register_domain_policy(PolicyBundle(domain="hr", keywords=KeywordPack(include=["one"])))
    reg.register_domain_policy(PolicyBundle(domain="hr", keywords=KeywordPack(include=["two"])))
    inc = PolicyProvider(registry=reg).get_policy("hr").keywords.include
    assert "two" in inc
    assert "one" not in inc


def test_tenant_bundle_overrides_domain_bundle():
    reg = PolicyRegistry()
    reg.register_domain_policy(PolicyBundle(domain="hr", keywords=KeywordPack(include=["shared"])))
    reg.register_domain_policy(PolicyBundle(domain="hr", tenant="acme", keywords=KeywordPack(include=["acmeonly"])))
    prov = PolicyProvider(registry=reg)
    assert "acmeonly" in prov.get_policy("hr", "acme").keywords.include
    assert "shared" in prov.get_policy("hr", "other").keywords.include
    assert "shared" in prov.get_policy("hr").keywords.include
    assert reg.domains() == ["hr"]
    reg.clear()
    assert reg.domains() == []


def test_bundle_rejects_unknown_fields():
    with pytest.raises(PydanticValidationError):
        PolicyBundle(domain="hr", extra_field=True)


def test_load_policy_file_registers_bundles(tmp_path):
    p = tmp_path / "pii_policies.json"
    p.write_text(
        json.dumps(
            {
                "schema_version": 1,
                "policies": [
                    {"domain": "billing", "rules": [{"match": "invoice.*", "action": "nonpii"}]},
                    {"domain": "crm", "keywords": {"include": ["nickname"]}},
                ],
            }
        ),
        encoding="utf-8",
    )
    cfg, failsafe, err = load_policy_file(str(p))
    assert failsafe is False
    assert err == ""
    reg = PolicyRegistry()
    assert register_policies(reg, cfg) == 2
    assert reg.domains() == ["billing", "crm"]


@pytest.mark.parametrize(
    "payload",
    [
        {"policies": []},
        {"schema_version": 2, "policies": []},
        {"schema_version": "x", "policies": []},
        {"schema_version": 1, "policies": [{"domain": "a", "rules": [{"match": "x", "action": "maybe"}]}]},
    ],
)
def test_invalid_policy_file_is_failsafe(tmp_path, payload):
    p = tmp_path / "pii_policies.json"
    p.write_text(json.dumps(payload), encoding="utf-8")
    cfg, failsafe, err = load_policy_file(str(p))
    assert failsafe is True
    assert err
    assert cfg.policies == []


def test_missing_policy_file_is_failsafe(tmp_path):
    cfg, failsafe, err = load_policy_file(str(tmp_path / "nope.json"))
    assert failsafe is True
    assert "missing" in err
