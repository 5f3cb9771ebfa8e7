from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from piiguard.core.policy.defaults import DEFAULT_BASELINE
from piiguard.core.policy.models import KeywordPack, PolicyBundle


_Key = Tuple[str, Optional[str]]


class PolicyRegistry:
    """
    Domain policy registry.

    Contract: bundles are registered once per (domain, tenant) during single-threaded
    startup, before the first classification of that domain. Re-registration is
    last-write-wins. Reads take no lock.
    """

    def __init__(self) -> None:
        self._bundles: Dict[_Key, PolicyBundle] = {}
        self._lock = threading.Lock()

    def register_domain_policy(self, bundle: PolicyBundle) -> None:
        with self._lock:
            self._bundles[(bundle.domain, bundle.tenant)] = bundle

    def get(self, domain: str, tenant: Optional[str] = None) -> Optional[PolicyBundle]:
        if tenant is not None:
            hit = self._bundles.get((domain, tenant))
            if hit is not None:
                return hit
        return self._bundles.get((domain, None))

    def domains(self) -> List[str]:
        return sorted({d for d, _t in self._bundles})

    def clear(self) -> None:
        with self._lock:
            self._bundles.clear()


def merge_keywords(baseline: KeywordPack, domain: KeywordPack) -> KeywordPack:
    # (baseline ∪ domain) − domain.exclude, baseline order first
    merged: List[str] = []
    seen = set()
    for kw in list(baseline.include) + list(domain.include or []):
        if kw not in seen:
            seen.add(kw)
            merged.append(kw)
    exclude = set(domain.exclude or [])
    return KeywordPack(include=[kw for kw in merged if kw not in exclude], exclude=domain.exclude)


class PolicyProvider:
    def __init__(self, *, registry: Optional[PolicyRegistry] = None, baseline: KeywordPack = DEFAULT_BASELINE):
        self.registry = registry if registry is not None else PolicyRegistry()
        self.baseline = baseline

    def get_policy(self, domain: str, tenant: Optional[str] = None) -> PolicyBundle:
        registered = self.registry.get(domain, tenant)
        if registered is None:
            # absent domain policy is not an error: baseline keywords only
            return PolicyBundle(domain=domain, tenant=tenant, keywords=self.baseline)
        return PolicyBundle(
            domain=domain,
            tenant=tenant,
            keywords=merge_keywords(self.baseline, registered.keywords),
            field_hints=registered.field_hints,
            rules=registered.rules,
            protection=registered.protection,
        )
