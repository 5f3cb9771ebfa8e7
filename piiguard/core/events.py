from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


REDACT_KEYS = {
    "value",
    "original_value",
    "plaintext",
    "passphrase",
    "password",
    "secret",
    "token",
    "api_key",
    "key",
    "encryption_key",
    "pseudonymization_salt",
    "salt",
    "authorization",
}


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if str(k).lower() in REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


# Exported helper for other subsystems (errors, event log, metadata builders)
def redact(obj: Any) -> Any:
    return _redact(obj)


@dataclass(frozen=True)
class ComplianceEventLogger:
    """
    Append-only JSONL log of compliance events (classification, protection, retention).

    Details are key-redacted before writing; callers pass paths and counts, never raw values.
    """

    path: str = os.path.join("logs", "compliance.jsonl")
    _lock: threading.Lock = threading.Lock()

    def log(self, *, trace_id: str, event: str, outcome: str = "ok", details: Optional[Dict[str, Any]] = None) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "trace_id": trace_id,
            "event": event,
            "outcome": outcome,
            "details": _redact(details or {}),
        }
        line = json.dumps(payload, ensure_ascii=False, default=str)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
