from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from piiguard.core.errors import ValidationError
from piiguard.core.pii.classifier import Classifier
from piiguard.core.pii.models import Classification, PiiCategory
from piiguard.core.retention.calculator import RetentionCalculator
from piiguard.core.retention.models import (
    AuditAction,
    DeletionOutcome,
    DeletionReason,
    DeletionRequest,
    RetentionPeriod,
)

from tests.helpers.fakes import (
    AsyncRetentionRepository,
    FailingRetentionRepository,
    FakeClock,
    FakeEventLogger,
    InMemoryRetentionRepository,
)


def _cls(*cats: PiiCategory) -> Classification:
    return Classifier.aggregate([]).model_copy(update={"contains_pii": bool(cats), "pii_categories": list(cats)})


def _request(**kw) -> DeletionRequest:
    base = dict(
        tenant_id="acme",
        entity_id="e-1",
        entity_type="customer",
        domain="crm",
        reason=DeletionReason.USER_REQUEST,
        requested_by="u-7",
        timestamp="2025-01-01T00:00:00Z",
    )
    base.update(kw)
    return DeletionRequest(**base)


def test_non_pii_gets_30_day_floor(fake_clock):
    r = asyncio.run(RetentionCalculator(clock=fake_clock).calculate_expiry(_cls()))
    assert r.retention_days == 30
    assert r.legal_basis == "Legitimate interests (Article 6(1)(f))"
    assert r.automatic_deletion is True
    assert r.expiry == fake_clock.now() + dt.timedelta(days=30)
    assert r.rule_pack == "retention-defaults@1.1.0"


def test_longest_window_wins_wholesale(fake_clock):
    calc = RetentionCalculator(clock=fake_clock)
    r = asyncio.run(calc.calculate_expiry(_cls(PiiCategory.CONTACT_INFO, PiiCategory.FINANCIAL)))
    assert r.retention_days == 2555
    assert r.legal_basis == "Legal obligation (Article 6(1)(c))"
    assert r.automatic_deletion is False


def test_ties_keep_first_selection(fake_clock):
    calc = RetentionCalculator(clock=fake_clock)
    r = asyncio.run(calc.calculate_expiry(_cls(PiiCategory.PERSONAL_IDENTIFIER, PiiCategory.FINANCIAL)))
    assert r.retention_days == 2555
    assert r.automatic_deletion is True


def test_default_periods_by_category(fake_clock):
    calc = RetentionCalculator(clock=fake_clock)
    days = {p.category: p.retention_days for p in calc.get_retention_periods()}
    assert days == {
        PiiCategory.PERSONAL_IDENTIFIER: 2555,
        PiiCategory.CONTACT_INFO: 1095,
        PiiCategory.FINANCIAL: 2555,
        PiiCategory.HEALTH: 2190,
        PiiCategory.SENSITIVE: 365,
    }
    health = asyncio.run(calc.calculate_expiry(_cls(PiiCategory.HEALTH)))
    assert health.legal_basis == "Vital interests (Article 6(1)(d))"


def test_is_expired_is_strict(fake_clock):
    calc = RetentionCalculator(clock=fake_clock)
    c = _cls(PiiCategory.SENSITIVE)
    created = fake_clock.now() - dt.timedelta(days=365)
    assert asyncio.run(calc.is_expired(created, c)) is False
    fake_clock.advance(1)
    assert asyncio.run(calc.is_expired(created, c)) is True
    assert asyncio.run(calc.is_expired(created, c, now=created)) is False


def test_repository_periods_replace_defaults(fake_clock):
    repo = InMemoryRetentionRepository(
        periods=[
            RetentionPeriod(
                category=PiiCategory.CONTACT_INFO,
                retention_days=90,
                legal_basis="Contract (Article 6(1)(b))",
                automatic_deletion=True,
            )
        ]
    )
    calc = RetentionCalculator(repository=repo, clock=fake_clock)
    r = asyncio.run(calc.calculate_expiry(_cls(PiiCategory.CONTACT_INFO, PiiCategory.FINANCIAL), "acme", "crm"))
    assert r.retention_days == 90
    assert r.legal_basis == "Contract (Article 6(1)(b))"
    assert repo.calls == [("acme", "crm")]


def test_async_repository_rows(fake_clock):
    repo = AsyncRetentionRepository(
        rows=[
            {
                "category": "health",
                "retention_days": 3650,
                "legal_basis": "Public health (Article 9(2)(i))",
                "automatic_deletion": False,
            }
        ]
    )
    r = asyncio.run(RetentionCalculator(repository=repo, clock=fake_clock).calculate_expiry(_cls(PiiCategory.HEALTH)))
    assert r.retention_days == 3650


def test_repository_failure_propagates(fake_clock):
    calc = RetentionCalculator(repository=FailingRetentionRepository(), clock=fake_clock)
    with pytest.raises(RuntimeError):
        asyncio.run(calc.calculate_expiry(_cls(PiiCategory.HEALTH)))


def test_update_retention_period_is_instance_local(fake_clock):
    a = RetentionCalculator(clock=fake_clock)
    b = RetentionCalculator(clock=fake_clock)
    a.update_retention_period(PiiCategory.SENSITIVE, 30 * 12, "Explicit consent (Article 9(2)(a))")
    a.update_retention_period(PiiCategory.CONTACT_INFO, 4000, "Contract (Article 6(1)(b))")
    r = asyncio.run(a.calculate_expiry(_cls(PiiCategory.CONTACT_INFO)))
    assert r.retention_days == 4000
    assert r.legal_basis == "Contract (Article 6(1)(b))"
    assert asyncio.run(b.calculate_expiry(_cls(PiiCategory.CONTACT_INFO))).retention_days == 1095

    periods = a.get_retention_periods()
    periods[0].retention_days = 1
    assert a.get_retention_periods()[0].retention_days == 2555


@pytest.mark.parametrize("days", [0, -5, True, "10"])
def test_update_retention_period_validates(fake_clock, days):
    with pytest.raises(ValidationError):
        RetentionCalculator(clock=fake_clock).update_retention_period(PiiCategory.HEALTH, days, "x")


def test_generate_retention_metadata(classifier, fake_clock):
    c = classifier.classify({"email": "a@b.com", "card": "4111111111111111"}, "crm")
    ctx = {"tenant_id": "acme", "user_id": "u-1", "entity_type": "customer", "entity_id": "e-9", "domain": "crm"}
    meta = asyncio.run(RetentionCalculator(clock=fake_clock).generate_retention_metadata(c, ctx))
    assert meta.retention_expiry == "2031-12-31T00:00:00Z"
    assert meta.automatic_deletion is False
    audit = meta.audit_record
    assert audit.action == AuditAction.CREATED
    assert audit.performed_by == "u-1"
    assert audit.timestamp == "2025-01-01T00:00:00Z"
    assert audit.rule_pack == "retention-defaults@1.1.0"
    assert audit.metadata == {
        "pii_categories": ["contact_info", "financial"],
        "sensitive_fields": ["email", "card"],
        "retention_days": 2555,
        "confidentiality_level": "confidential",
        "requires_encryption": True,
    }


def test_deletion_under_legal_hold_is_retained(fake_clock):
    ev = FakeEventLogger()
    res = RetentionCalculator(clock=fake_clock, event_logger=ev).process_deletion(_request(legal_hold=True))
    assert res.success is True
    assert res.action == DeletionOutcome.RETAINED
    assert res.reason == "Data retention required due to active legal hold"
    a = res.audit_record
    assert a.action == AuditAction.UPDATED
    assert a.retention_expiry == "extended"
    assert a.legal_basis == "Legal hold active"
    assert a.metadata["legal_hold_active"] is True
    assert a.metadata["processing_outcome"] == "retained"
    assert a.metadata["original_request"]["entity_id"] == "e-1"
    assert ev.named("retention.deletion")[0]["outcome"] == "retained"


def test_legal_requirement_is_retained(fake_clock):
    res = RetentionCalculator(clock=fake_clock).process_deletion(_request(reason=DeletionReason.LEGAL_REQUIREMENT))
    assert res.action == DeletionOutcome.RETAINED
    assert res.reason == "Data retention required by legal obligation"
    assert res.audit_record.action == AuditAction.UPDATED
    assert res.audit_record.retention_expiry == "extended"
    assert res.audit_record.legal_basis == "Article 17 - Right to erasure"


@pytest.mark.parametrize("reason", [DeletionReason.USER_REQUEST, DeletionReason.RETENTION_EXPIRED])
def test_other_reasons_delete(fake_clock, reason):
    res = RetentionCalculator(clock=fake_clock).process_deletion(_request(reason=reason))
    assert res.action == DeletionOutcome.DELETED
    assert res.reason is None
    assert res.audit_record.action == AuditAction.DELETED
    assert res.audit_record.retention_expiry == "immediate"
    assert res.audit_record.performed_by == "u-7"
    assert "legal_hold_active" not in res.audit_record.metadata


def test_anonymize_expired(fake_clock):
    ev = FakeEventLogger()
    a = RetentionCalculator(clock=fake_clock, rule_pack="retention-custom@2.0.0", event_logger=ev).anonymize_expired(
        "e-2", "customer", "acme", "crm"
    )
    assert a.action == AuditAction.ANONYMIZED
    assert a.retention_expiry == "n/a"
    assert a.legal_basis == "Data minimization principle (Article 5(1)(c))"
    assert a.performed_by == "system"
    assert a.rule_pack == "retention-custom@2.0.0"
    assert a.metadata["anonymization_method"] == "field_replacement"
    assert a.metadata["preserved_fields"] == ["id", "createdAt", "tenantId"]
    assert a.metadata["anonymization_date"] == "2025-01-01T00:00:00Z"
    assert len(ev.named("retention.anonymized")) == 1


def test_naive_clock_is_treated_as_utc():
    clock = FakeClock(dt.datetime(2025, 1, 1))
    r = asyncio.run(RetentionCalculator(clock=clock).calculate_expiry(_cls()))
    assert r.expiry == dt.datetime(2025, 1, 31, tzinfo=dt.timezone.utc)
