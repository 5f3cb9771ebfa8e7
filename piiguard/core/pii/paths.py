from __future__ import annotations

import re
from typing import Any, List, Sequence

from piiguard.core.errors import ValidationError
from piiguard.core.pii.models import PathSegment


_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


def format_path(segments: Sequence[PathSegment]) -> str:
    # ("people", 0, "email") -> "people[0].email"
    out = ""
    for seg in segments:
        if isinstance(seg, int):
            out += f"[{seg}]"
        else:
            out = f"{out}.{seg}" if out else str(seg)
    return out


def parse_path(path: str) -> List[PathSegment]:
    """
    Inverse of format_path for keys without '.', '[' or ']'.
    """
    out: List[PathSegment] = []
    for key, index in _TOKEN.findall(path or ""):
        out.append(int(index) if index else key)
    return out


def field_name_of(segments: Sequence[PathSegment]) -> str:
    # nearest mapping key; array indexes are not part of a field name
    for seg in reversed(segments):
        if not isinstance(seg, int):
            return str(seg)
    return ""


def _resolve_key(container: dict, seg: PathSegment) -> Any:
    if seg in container:
        return seg
    for k in container:
        if str(k) == str(seg):
            return k
    raise KeyError(seg)


def get_at(record: Any, segments: Sequence[PathSegment]) -> Any:
    node = record
    for seg in segments:
        if isinstance(node, dict):
            node = node[_resolve_key(node, seg)]
        elif isinstance(node, list) and isinstance(seg, int):
            node = node[seg]
        else:
            raise KeyError(seg)
    return node


def set_at(record: Any, segments: Sequence[PathSegment], value: Any) -> Any:
    """
    Set in place and return the record. An empty path replaces the root value itself.
    """
    if not segments:
        return value
    try:
        parent = get_at(record, segments[:-1])
        last = segments[-1]
        if isinstance(parent, dict):
            parent[_resolve_key(parent, last)] = value
        elif isinstance(parent, list) and isinstance(last, int):
            parent[last] = value
        else:
            raise KeyError(last)
    except (KeyError, IndexError) as e:
        raise ValidationError("Record path does not exist.", path=format_path(segments)) from e
    return record
