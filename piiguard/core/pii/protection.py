from __future__ import annotations

import copy
import hashlib
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from piiguard.core.clock import Clock, SystemClock
from piiguard.core.config.models import DataProtectionConfig
from piiguard.core.crypto import KeyProvider, aesgcm_decrypt, aesgcm_encrypt
from piiguard.core.errors import UnsupportedOperationError
from piiguard.core.logger import get_logger
from piiguard.core.pii.masking import is_email, is_phone, mask_value
from piiguard.core.pii.models import (
    Classification,
    PathSegment,
    PiiCategory,
    ProtectedRecord,
    ProtectionResult,
    ProtectionStrategy,
    RestoreResult,
    UnsupportedReversal,
)
from piiguard.core.pii.paths import format_path, get_at, parse_path, set_at
from piiguard.core.pii.redaction import mask_for_log as _mask_for_log


_ENCRYPT_CATEGORIES = frozenset({PiiCategory.FINANCIAL, PiiCategory.HEALTH, PiiCategory.SENSITIVE})

_REVERSIBLE = {
    ProtectionStrategy.NONE: False,
    ProtectionStrategy.MASK: False,
    ProtectionStrategy.HASH: False,
    ProtectionStrategy.ENCRYPT: True,
    ProtectionStrategy.ANONYMIZE: False,
    # only with an external pseudonym mapping table, which this engine does not keep
    ProtectionStrategy.PSEUDONYMIZE: True,
}


def select_strategy(categories: Sequence[PiiCategory]) -> ProtectionStrategy:
    """
    Strategy from a field's own categories; encryption-grade categories always win.
    """
    cats = set(categories)
    if cats & _ENCRYPT_CATEGORIES:
        return ProtectionStrategy.ENCRYPT
    if cats == {PiiCategory.CONTACT_INFO}:
        return ProtectionStrategy.MASK
    return ProtectionStrategy.PSEUDONYMIZE


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def pseudonymize_value(value: str, *, tenant: str, salt: str) -> str:
    digest = hashlib.sha256(f"{tenant}:{value}:{salt}".encode("utf-8")).hexdigest()
    return f"PSEUDO_{digest[:12].upper()}"


def anonymize_value(value: str) -> str:
    if is_email(value):
        return "anonymous@example.com"
    if is_phone(value):
        return "000-000-0000"
    return "[REDACTED]"


class ProtectionEngine:
    """
    Field-level protection of classified records.

    - financial / health / sensitive fields: AES-256-GCM (reversible with the key)
    - contact-only fields: format-preserving mask
    - everything else: tenant-salted pseudonym

    The policy bundle's `protection` map is not consulted here.
    """

    def __init__(
        self,
        *,
        key_provider: KeyProvider,
        config: Optional[DataProtectionConfig] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
        event_logger: Any = None,
    ):
        self.key_provider = key_provider
        self.config = config or DataProtectionConfig()
        self.clock = clock or SystemClock()
        self.logger = logger or get_logger("protection")
        self.event_logger = event_logger
        self._apply: Dict[ProtectionStrategy, Callable[[str, Optional[str], str], str]] = {
            ProtectionStrategy.NONE: lambda v, _k, _t: v,
            ProtectionStrategy.MASK: lambda v, _k, _t: mask_value(v, preserve_format=True),
            ProtectionStrategy.HASH: lambda v, _k, _t: hash_value(v),
            ProtectionStrategy.ENCRYPT: lambda v, k, _t: self.encrypt_value(v, k),
            ProtectionStrategy.ANONYMIZE: lambda v, _k, _t: anonymize_value(v),
            ProtectionStrategy.PSEUDONYMIZE: lambda v, _k, t: pseudonymize_value(v, tenant=t, salt=self.config.pseudonymization_salt),
        }
        self._reverse: Dict[ProtectionStrategy, Callable[[str, Optional[str]], str]] = {
            ProtectionStrategy.ENCRYPT: lambda v, k: self.decrypt_value(v, k),
        }

    # ---- ciphers ----
    def encrypt_value(self, plaintext: str, key_id: Optional[str] = None) -> str:
        return aesgcm_encrypt(self.key_provider.get_key(key_id), plaintext)

    def decrypt_value(self, payload: str, key_id: Optional[str] = None) -> str:
        return aesgcm_decrypt(self.key_provider.get_key(key_id), payload)

    # ---- single values ----
    def key_id_for(self, strategy: ProtectionStrategy) -> Optional[str]:
        return self.config.high_security_key_id if strategy == ProtectionStrategy.ENCRYPT else None

    def protect_value(
        self,
        value: str,
        strategy: ProtectionStrategy,
        key_id: Optional[str] = None,
        tenant: str = "default",
        path: str = "",
        segments: Optional[Sequence[PathSegment]] = None,
    ) -> ProtectionResult:
        strategy = ProtectionStrategy(strategy)
        if strategy == ProtectionStrategy.ENCRYPT and key_id is None:
            key_id = self.key_id_for(strategy)
        protected = self._apply[strategy](value, key_id, tenant)
        return ProtectionResult(
            path=path,
            original_value=value,
            protected_value=protected,
            strategy=strategy,
            key_id=key_id if strategy == ProtectionStrategy.ENCRYPT else None,
            reversible=_REVERSIBLE[strategy],
            timestamp=self.clock.now(),
            segments=list(segments if segments is not None else parse_path(path)),
        )

    def reverse(self, protected_value: str, strategy: ProtectionStrategy, key_id: Optional[str] = None) -> str:
        strategy = ProtectionStrategy(strategy)
        fn = self._reverse.get(strategy)
        if fn is None:
            if strategy == ProtectionStrategy.PSEUDONYMIZE:
                raise UnsupportedOperationError("Pseudonym reversal requires an external mapping table.", strategy=strategy.value)
            raise UnsupportedOperationError(f"Strategy '{strategy.value}' is irreversible.", strategy=strategy.value)
        return fn(protected_value, key_id)

    # ---- records ----
    def protect(self, record: Any, classification: Classification, tenant: str = "default", *, trace_id: str = "") -> ProtectedRecord:
        data = copy.deepcopy(record)
        if not classification.contains_pii:
            return ProtectedRecord(data=data, log=[])

        log: List[ProtectionResult] = []
        for m in classification.matches:
            segments = m.segments or parse_path(m.path)
            try:
                current = get_at(data, segments)
            except (KeyError, IndexError):
                # classification came from a different record shape
                self.logger.warning("protect: classified path missing from record path=%s", m.path)
                continue
            if not isinstance(current, str):
                continue
            strategy = select_strategy(m.categories)
            result = self.protect_value(
                current, strategy, tenant=tenant, path=m.path or format_path(segments), segments=segments
            )
            data = set_at(data, segments, result.protected_value)
            log.append(result)

        strategies = sorted({r.strategy.value for r in log})
        self.logger.info("protected %d field(s) strategies=%s", len(log), ",".join(strategies))
        if self.event_logger is not None:
            self.event_logger.log(
                trace_id=trace_id,
                event="pii.protected",
                details={
                    "fields": [r.path for r in log],
                    "strategies": strategies,
                    "reversible_fields": sum(1 for r in log if r.reversible),
                },
            )
        return ProtectedRecord(data=data, log=log)

    def restore(self, protected_data: Any, log: Sequence[ProtectionResult], *, strict: bool = False, trace_id: str = "") -> RestoreResult:
        """
        Decrypt logged ENCRYPT entries. Reversible entries without an inverse (pseudonyms)
        are reported in `unsupported`, or raise when strict. Irreversible entries are skipped.
        Reversible entries whose protected value can no longer be found are reported in `missing`.
        """
        data = copy.deepcopy(protected_data)
        restored: List[str] = []
        unsupported: List[UnsupportedReversal] = []
        missing: List[str] = []

        for entry in log:
            if not entry.reversible:
                continue
            segments = self._locate(data, entry)
            if segments is None:
                self.logger.warning("restore: logged path no longer holds its protected value path=%s", entry.path)
                missing.append(entry.path)
                continue
            path = entry.path or format_path(segments)
            if entry.strategy not in self._reverse:
                if strict:
                    self.reverse(entry.protected_value, entry.strategy, entry.key_id)
                unsupported.append(
                    UnsupportedReversal(path=path, strategy=entry.strategy, reason="no inverse without an external mapping table")
                )
                continue
            data = set_at(data, segments, self.reverse(entry.protected_value, entry.strategy, entry.key_id))
            restored.append(path)

        if self.event_logger is not None:
            self.event_logger.log(
                trace_id=trace_id,
                event="pii.restored",
                details={"restored": restored, "unsupported": [u.path for u in unsupported], "missing": missing},
            )
        return RestoreResult(data=data, restored=restored, unsupported=unsupported, missing=missing)

    def mask_for_log(self, record: Any, classification: Classification) -> Any:
        return _mask_for_log(record, classification)

    @staticmethod
    def _locate(data: Any, entry: ProtectionResult) -> Optional[List[PathSegment]]:
        # recorded segments first; the string path is ambiguous for keys holding '.' or '['
        candidates = [entry.segments] if entry.segments else []
        if entry.path:
            candidates.append(parse_path(entry.path))
        for segments in candidates:
            try:
                current = get_at(data, segments)
            except (KeyError, IndexError):
                continue
            if current == entry.protected_value:
                return list(segments)
        # entries from older logs: match the protected value among top-level fields
        if isinstance(data, dict):
            for k, v in data.items():
                if v == entry.protected_value:
                    return [k]
        return None
