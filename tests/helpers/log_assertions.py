from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List


def read_jsonl(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def assert_value_absent(objs: Iterable[Any], raw: str) -> None:
    blob = json.dumps(list(objs), ensure_ascii=False, default=str)
    assert raw not in blob
