from __future__ import annotations

import base64
import hashlib

import pytest

from piiguard.core.crypto import (
    EnvironmentKeyProvider,
    StaticKeyProvider,
    aesgcm_decrypt,
    aesgcm_encrypt,
    generate_key_bytes,
    is_encrypted,
)
from piiguard.core.errors import ConfigError, CryptoError, DecryptionError, MalformedPayloadError


def _flip(b64: str, index: int) -> str:
    raw = bytearray(base64.b64decode(b64))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


def test_aesgcm_round_trip():
    key = generate_key_bytes()
    blob = aesgcm_encrypt(key, "Type 2 diabetes ✓")
    assert is_encrypted(blob)
    assert aesgcm_decrypt(key, blob) == "Type 2 diabetes ✓"


def test_wire_format_shape():
    blob = aesgcm_encrypt(generate_key_bytes(), "x")
    parts = blob.split(":")
    assert parts[:2] == ["enc", "gcm"]
    assert len(base64.b64decode(parts[2])) == 12
    assert len(base64.b64decode(parts[4])) == 16


def test_fresh_nonce_per_call():
    key = generate_key_bytes()
    assert aesgcm_encrypt(key, "same") != aesgcm_encrypt(key, "same")


@pytest.mark.parametrize("part", [3, 4])
def test_single_byte_tamper_fails(part):
    key = generate_key_bytes()
    parts = aesgcm_encrypt(key, "account 12345678").split(":")
    parts[part] = _flip(parts[part], 0)
    with pytest.raises(DecryptionError) as ei:
        aesgcm_decrypt(key, ":".join(parts))
    assert ei.value.code == "decryption_failed"


def test_wrong_key_fails():
    blob = aesgcm_encrypt(generate_key_bytes(), "x")
    with pytest.raises(DecryptionError):
        aesgcm_decrypt(generate_key_bytes(), blob)


@pytest.mark.parametrize(
    "payload",
    [
        "plain text",
        "enc:gcm:a:b",
        "enc:gcm:a:b:c:d",
        "foo:gcm:AAAA:AAAA:AAAA",
        "enc:gcm:!!!!:AAAA:AAAA",
        "enc:gcm:" + base64.b64encode(b"12345678").decode() + ":AAAA:" + base64.b64encode(b"0" * 16).decode(),
        "enc:gcm:" + base64.b64encode(b"0" * 12).decode() + ":AAAA:" + base64.b64encode(b"0" * 8).decode(),
    ],
)
def test_malformed_payloads(payload):
    with pytest.raises(MalformedPayloadError) as ei:
        aesgcm_decrypt(generate_key_bytes(), payload)
    assert ei.value.code == "malformed_payload"


def test_short_key_rejected():
    with pytest.raises(CryptoError):
        aesgcm_encrypt(b"short", "x")


def test_environment_key_provider():
    env = {
        "SECURITY_PII_ENCRYPTION_KEY": "d" * 32,
        "PII_KEY_HIGH_SECURITY_KEY": "h" * 32,
    }
    kp = EnvironmentKeyProvider(environ=env)
    assert kp.get_key() == hashlib.sha256(("d" * 32).encode()).digest()
    assert kp.get_key("high-security-key") == hashlib.sha256(("h" * 32).encode()).digest()
    # unknown key id falls back to the default secret
    assert kp.get_key("reporting") == kp.get_key()


def test_environment_key_provider_without_secret():
    with pytest.raises(ConfigError):
        EnvironmentKeyProvider(environ={}).get_key()


def test_env_name_for():
    assert EnvironmentKeyProvider.env_name_for("high-security-key") == "PII_KEY_HIGH_SECURITY_KEY"
    assert EnvironmentKeyProvider.env_name_for("v2.archive") == "PII_KEY_V2_ARCHIVE"


def test_static_key_provider():
    k1, k2 = generate_key_bytes(), generate_key_bytes()
    kp = StaticKeyProvider(keys={None: k1, "hs": k2})
    assert kp.get_key() == k1
    assert kp.get_key("hs") == k2
    assert kp.get_key("other") == k1
    with pytest.raises(CryptoError):
        StaticKeyProvider().get_key()
    with pytest.raises(CryptoError):
        StaticKeyProvider(keys={None: b"x" * 16}).get_key()
