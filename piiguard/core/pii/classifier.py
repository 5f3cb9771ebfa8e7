from __future__ import annotations

"""
Rule-and-pattern PII classifier.

Per string leaf, first match wins:
1. path rule (glob)        nonpii drops the field, pii records it at confidence 1.0
2. field hint (exact path) forces the field-name flag on, or skips the field
3. keyword heuristic       substring of the field name against the merged include list
4. value patterns          email, phone, IP, SSN, Luhn card, bank account, ZIP, MRN, licence, passport

Confidence and risk-score constants are fixed; downstream alert thresholds depend on them.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from piiguard.core.errors import CyclicRecordError
from piiguard.core.logger import get_logger
from piiguard.core.pii.models import (
    Classification,
    ConfidentialityLevel,
    DetectorKind,
    MatchDetail,
    PathSegment,
    PiiCategory,
)
from piiguard.core.pii.paths import field_name_of, format_path
from piiguard.core.pii.patterns import categorize, detect_patterns
from piiguard.core.policy.matcher import resolve_rule
from piiguard.core.policy.models import PolicyBundle, RuleAction
from piiguard.core.policy.provider import PolicyProvider, PolicyRegistry


CONFIDENCE_FIELD_NAME = 0.6
CONFIDENCE_PATTERN = 0.7
CONFIDENCE_BOTH = 0.95
CONFIDENCE_PATH_RULE = 1.0

CATEGORY_WEIGHTS: Dict[PiiCategory, float] = {
    PiiCategory.SENSITIVE: 1.0,
    PiiCategory.HEALTH: 0.9,
    PiiCategory.FINANCIAL: 0.8,
    PiiCategory.PERSONAL_IDENTIFIER: 0.6,
    PiiCategory.CONTACT_INFO: 0.4,
}

ENCRYPTION_CATEGORIES = frozenset({PiiCategory.FINANCIAL, PiiCategory.HEALTH, PiiCategory.SENSITIVE})


def iter_string_leaves(record: Any) -> Iterator[Tuple[Tuple[PathSegment, ...], str]]:
    """
    Depth-first (segments, value) for every string leaf. Dicts yield key segments,
    lists yield index segments. Raises CyclicRecordError on a reference cycle.
    """
    on_stack: set = set()

    def visit(node: Any, segments: Tuple[PathSegment, ...]) -> Iterator[Tuple[Tuple[PathSegment, ...], str]]:
        if node is None:
            return
        if isinstance(node, (dict, list)):
            marker = id(node)
            if marker in on_stack:
                raise CyclicRecordError(path=format_path(segments))
            on_stack.add(marker)
            try:
                if isinstance(node, dict):
                    for key, value in node.items():
                        yield from visit(value, segments + (str(key),))
                else:
                    for index, value in enumerate(node):
                        yield from visit(value, segments + (index,))
            finally:
                on_stack.discard(marker)
            return
        if isinstance(node, str):
            yield segments, node

    yield from visit(record, ())


def confidence_for(field_name_flag: bool, pattern_flag: bool) -> float:
    confidence = 0.0
    if field_name_flag:
        confidence += CONFIDENCE_FIELD_NAME
    if pattern_flag:
        confidence += CONFIDENCE_PATTERN
    if field_name_flag and pattern_flag:
        confidence = CONFIDENCE_BOTH
    return min(confidence, 1.0)


def risk_score(matches: Sequence[MatchDetail]) -> float:
    if not matches:
        return 0.0
    max_weight = max(CATEGORY_WEIGHTS.get(c, 0.0) for m in matches for c in m.categories)
    volume = min(len(matches) / 10, 1.0)
    avg_confidence = sum(m.confidence for m in matches) / len(matches)
    return min(max_weight * (0.7 + volume * 0.3) * avg_confidence, 1.0)


def confidentiality_for(categories: Sequence[PiiCategory]) -> ConfidentialityLevel:
    cats = set(categories)
    if PiiCategory.HEALTH in cats or PiiCategory.SENSITIVE in cats:
        return ConfidentialityLevel.RESTRICTED
    if PiiCategory.FINANCIAL in cats:
        return ConfidentialityLevel.CONFIDENTIAL
    if PiiCategory.PERSONAL_IDENTIFIER in cats or PiiCategory.CONTACT_INFO in cats:
        return ConfidentialityLevel.INTERNAL
    return ConfidentialityLevel.PUBLIC


class Classifier:
    def __init__(
        self,
        *,
        registry: Optional[PolicyRegistry] = None,
        provider: Optional[PolicyProvider] = None,
        logger: Optional[logging.Logger] = None,
        event_logger: Any = None,
    ):
        self.provider = provider or PolicyProvider(registry=registry)
        self.logger = logger or get_logger("classifier")
        self.event_logger = event_logger

    def classify(self, record: Any, domain: str, tenant: Optional[str] = None, *, trace_id: str = "") -> Classification:
        policy = self.provider.get_policy(domain, tenant)
        matches: List[MatchDetail] = []
        for segments, value in iter_string_leaves(record):
            m = self.inspect_leaf(segments, value, policy)
            if m is not None:
                matches.append(m)

        result = self.aggregate(matches)
        self.logger.debug(
            "classified record domain=%s matches=%d categories=%s risk=%.4f",
            domain,
            len(matches),
            ",".join(c.value for c in result.pii_categories),
            result.risk_score,
        )
        if self.event_logger is not None:
            self.event_logger.log(
                trace_id=trace_id,
                event="pii.classified",
                details={
                    "domain": domain,
                    "tenant": tenant,
                    "contains_pii": result.contains_pii,
                    "sensitive_fields": list(result.sensitive_fields),
                    "categories": [c.value for c in result.pii_categories],
                    "risk_score": result.risk_score,
                },
            )
        return result

    def inspect_leaf(self, segments: Sequence[PathSegment], value: str, policy: PolicyBundle) -> Optional[MatchDetail]:
        if not value.strip():
            return None
        path = format_path(segments)
        field_name = field_name_of(segments)

        rule = resolve_rule(path, policy.rules)
        if rule is not None:
            if rule.action == RuleAction.NONPII:
                return None
            return MatchDetail(
                path=path,
                field_name=field_name,
                value=value,
                categories=[rule.category or PiiCategory.PERSONAL_IDENTIFIER],
                detector=DetectorKind.PATH_RULE,
                confidence=CONFIDENCE_PATH_RULE,
                segments=list(segments),
            )

        hints = policy.field_hints
        if hints is not None and path in (hints.pii_fields or []):
            field_name_flag = True
        elif hints is not None and path in (hints.non_pii_fields or []):
            return None
        else:
            lower = field_name.lower()
            field_name_flag = any(kw.lower() in lower for kw in policy.keywords.include)

        detected = detect_patterns(value)
        if not field_name_flag and not detected:
            return None

        categories = categorize(field_name, detected)
        if not categories:
            if not field_name_flag:
                # bare pattern shape (IP, ZIP, licence) with nothing corroborating it
                return None
            categories = [PiiCategory.PERSONAL_IDENTIFIER]

        return MatchDetail(
            path=path,
            field_name=field_name,
            value=value,
            categories=categories,
            detector=DetectorKind.FIELD_NAME if field_name_flag else DetectorKind.PATTERN,
            confidence=confidence_for(field_name_flag, bool(detected)),
            segments=list(segments),
        )

    @staticmethod
    def aggregate(matches: List[MatchDetail]) -> Classification:
        sensitive_fields: List[str] = []
        categories: List[PiiCategory] = []
        for m in matches:
            if m.path not in sensitive_fields:
                sensitive_fields.append(m.path)
            for c in m.categories:
                if c not in categories:
                    categories.append(c)

        contains_pii = len(matches) > 0
        cats = set(categories)
        hipaa = PiiCategory.HEALTH in cats and (PiiCategory.CONTACT_INFO in cats or PiiCategory.PERSONAL_IDENTIFIER in cats)
        return Classification(
            contains_pii=contains_pii,
            sensitive_fields=sensitive_fields,
            pii_categories=categories,
            confidentiality_level=confidentiality_for(categories),
            requires_encryption=bool(cats & ENCRYPTION_CATEGORIES),
            gdpr_applicable=contains_pii,
            hipaa_applicable=hipaa,
            popia_applicable=contains_pii,
            risk_score=risk_score(matches),
            matches=matches,
        )
