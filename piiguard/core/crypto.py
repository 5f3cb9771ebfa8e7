from __future__ import annotations

import base64
import binascii
import hashlib
import os
import secrets
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from piiguard.core.config.models import DataProtectionConfig
from piiguard.core.errors import ConfigError, CryptoError, DecryptionError, MalformedPayloadError


WIRE_PREFIX = "enc:gcm:"
KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16

DEFAULT_KEY_ENV = "SECURITY_PII_ENCRYPTION_KEY"
KEY_ENV_PREFIX = "PII_KEY_"


class KeyProvider(Protocol):
    def get_key(self, key_id: Optional[str] = None) -> bytes: ...


def derive_key(secret: str) -> bytes:
    # Single SHA-256 digest of the secret (no salt / KDF).
    return hashlib.sha256(secret.encode("utf-8")).digest()


def _b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def _b64d(s: str, *, part: str) -> bytes:
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise MalformedPayloadError(f"Encrypted payload {part} is not valid base64.", part=part) from e


def _check_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_BYTES:
        raise CryptoError("Encryption key must be 32 bytes (AES-256).")
    return bytes(key)


def is_encrypted(value: object) -> bool:
    return isinstance(value, str) and value.startswith(WIRE_PREFIX)


def aesgcm_encrypt(key: bytes, plaintext: str) -> str:
    """
    Encrypt to the wire format enc:gcm:<nonce-b64>:<ciphertext-b64>:<tag-b64>.
    A fresh 96-bit nonce is drawn per call.
    """
    aes = AESGCM(_check_key(key))
    nonce = secrets.token_bytes(NONCE_BYTES)
    sealed = aes.encrypt(nonce, plaintext.encode("utf-8"), None)
    ct, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return f"{WIRE_PREFIX}{_b64e(nonce)}:{_b64e(ct)}:{_b64e(tag)}"


def aesgcm_decrypt(key: bytes, payload: str) -> str:
    """
    Parse and authenticate a wire-format payload. Fails closed: either the full
    plaintext is returned or an error is raised.
    """
    if not isinstance(payload, str):
        raise MalformedPayloadError("Encrypted payload must be a string.")
    parts = payload.split(":")
    if len(parts) != 5:
        raise MalformedPayloadError(parts=len(parts))
    if parts[0] != "enc" or parts[1] != "gcm":
        raise MalformedPayloadError("Encrypted payload must start with 'enc:gcm:'.")
    nonce = _b64d(parts[2], part="nonce")
    ct = _b64d(parts[3], part="ciphertext")
    tag = _b64d(parts[4], part="tag")
    if len(nonce) != NONCE_BYTES:
        raise MalformedPayloadError("Encrypted payload nonce must be 12 bytes.", nonce_len=len(nonce))
    if len(tag) != TAG_BYTES:
        raise MalformedPayloadError("Encrypted payload tag must be 16 bytes.", tag_len=len(tag))
    aes = AESGCM(_check_key(key))
    try:
        pt = aes.decrypt(nonce, ct + tag, None)
    except InvalidTag as e:
        raise DecryptionError() from e
    try:
        return pt.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted value is not valid UTF-8.") from e


@dataclass
class EnvironmentKeyProvider:
    """
    Keys from environment secrets.

    - no key id: SECURITY_PII_ENCRYPTION_KEY (or the configured default secret)
    - key id "high-security-key": PII_KEY_HIGH_SECURITY_KEY, falling back to the default secret

    Each secret is turned into a 32-byte key with a single SHA-256 digest.
    """

    environ: Optional[Mapping[str, str]] = None
    default_secret: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: DataProtectionConfig, environ: Optional[Mapping[str, str]] = None) -> EnvironmentKeyProvider:
        return cls(environ=environ, default_secret=cfg.encryption_key)

    def _env(self) -> Mapping[str, str]:
        return self.environ if self.environ is not None else os.environ

    @staticmethod
    def env_name_for(key_id: str) -> str:
        return KEY_ENV_PREFIX + key_id.upper().replace("-", "_").replace(".", "_")

    def _default(self) -> str:
        secret = self.default_secret or self._env().get(DEFAULT_KEY_ENV) or ""
        if not secret:
            raise ConfigError(f"{DEFAULT_KEY_ENV} is not set.")
        return secret

    def get_key(self, key_id: Optional[str] = None) -> bytes:
        if key_id:
            secret = self._env().get(self.env_name_for(key_id)) or ""
            if secret:
                return derive_key(secret)
        return derive_key(self._default())


@dataclass
class StaticKeyProvider:
    """
    Explicit key material (vault integrations, tests). `None` maps to the default key.
    """

    keys: Dict[Optional[str], bytes] = field(default_factory=dict)

    def get_key(self, key_id: Optional[str] = None) -> bytes:
        key = self.keys.get(key_id)
        if key is None:
            key = self.keys.get(None)
        if key is None:
            raise CryptoError("No key available.", key_id=key_id or "")
        return _check_key(key)


def generate_key_bytes() -> bytes:
    # AES-256 key
    return secrets.token_bytes(KEY_BYTES)
