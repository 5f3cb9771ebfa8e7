from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from piiguard.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class PiiGuardError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class ConfigError(PiiGuardError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class ValidationError(PiiGuardError):
    def __init__(self, user_message: str = "Invalid input.", *, code: str = "validation_error", **ctx: Any):
        super().__init__(code, user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class MalformedPayloadError(ValidationError):
    def __init__(self, user_message: str = "Invalid encrypted payload format.", **ctx: Any):
        super().__init__(user_message, code="malformed_payload", **ctx)


class CyclicRecordError(ValidationError):
    def __init__(self, user_message: str = "Record contains a reference cycle.", **ctx: Any):
        super().__init__(user_message, code="cyclic_record", **ctx)


class CryptoError(PiiGuardError):
    def __init__(self, user_message: str = "Cryptographic operation failed.", *, code: str = "crypto_error", **ctx: Any):
        super().__init__(code, user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class DecryptionError(CryptoError):
    def __init__(self, user_message: str = "Encrypted value failed authentication.", **ctx: Any):
        super().__init__(user_message, code="decryption_failed", **ctx)


class UnsupportedOperationError(PiiGuardError):
    def __init__(self, user_message: str = "Operation is not supported.", **ctx: Any):
        super().__init__("unsupported_operation", user_message, severity=Severity.WARN, recoverable=False, context=ctx)
