from __future__ import annotations

import pytest

from piiguard.core.crypto import StaticKeyProvider, generate_key_bytes
from piiguard.core.pii.classifier import Classifier
from piiguard.core.policy.provider import PolicyRegistry

from tests.helpers.fakes import FakeClock, FakeEventLogger


@pytest.fixture
def registry():
    return PolicyRegistry()


@pytest.fixture
def classifier(registry):
    return Classifier(registry=registry)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def event_sink():
    return FakeEventLogger()


@pytest.fixture
def static_keys():
    """
    Default key plus a distinct high-security key.
    """
    return StaticKeyProvider(keys={None: generate_key_bytes(), "high-security-key": generate_key_bytes()})
