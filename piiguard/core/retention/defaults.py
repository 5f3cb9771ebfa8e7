from __future__ import annotations

from typing import List

from piiguard.core.config.models import DEFAULT_RULE_PACK  # noqa: F401
from piiguard.core.pii.models import PiiCategory
from piiguard.core.retention.models import RetentionPeriod


# non-PII floor; any category with a longer window replaces it
FLOOR_RETENTION_DAYS = 30
FLOOR_LEGAL_BASIS = "Legitimate interests (Article 6(1)(f))"
FLOOR_AUTOMATIC_DELETION = True


def default_retention_periods() -> List[RetentionPeriod]:
    return [
        RetentionPeriod(
            category=PiiCategory.PERSONAL_IDENTIFIER,
            retention_days=2555,  # 7 years
            legal_basis="Legal obligation (Article 6(1)(c))",
            automatic_deletion=True,
            requires_user_consent=False,
        ),
        RetentionPeriod(
            category=PiiCategory.CONTACT_INFO,
            retention_days=1095,  # 3 years
            legal_basis="Consent (Article 6(1)(a))",
            automatic_deletion=True,
            requires_user_consent=True,
        ),
        RetentionPeriod(
            category=PiiCategory.FINANCIAL,
            retention_days=2555,
            legal_basis="Legal obligation (Article 6(1)(c))",
            automatic_deletion=False,  # manual review
            requires_user_consent=False,
        ),
        RetentionPeriod(
            category=PiiCategory.HEALTH,
            retention_days=2190,  # 6 years
            legal_basis="Vital interests (Article 6(1)(d))",
            automatic_deletion=False,  # manual review
            requires_user_consent=False,
        ),
        RetentionPeriod(
            category=PiiCategory.SENSITIVE,
            retention_days=365,
            legal_basis="Explicit consent (Article 9(2)(a))",
            automatic_deletion=True,
            requires_user_consent=True,
        ),
    ]
