from __future__ import annotations

import functools
import re
from typing import Iterable, Optional

from piiguard.core.policy.models import PathRule


def _glob_to_regex(glob: str) -> str:
    out = []
    i = 0
    n = len(glob)
    while i < n:
        if glob.startswith("**", i):
            out.append(".*")
            i += 2
        elif glob.startswith("[*]", i):
            out.append(r"\[[^\]]+\]")
            i += 3
        elif glob[i] == "*":
            out.append(r"[^.\[\]]+")
            i += 1
        else:
            out.append(re.escape(glob[i]))
            i += 1
    return "^" + "".join(out) + "$"


@functools.lru_cache(maxsize=1024)
def compile_glob(glob: str) -> re.Pattern[str]:
    """
    Path glob:
    - `*`   one segment (anything except . [ ])
    - `[*]` any array index
    - `**`  any depth
    Anchored and case-insensitive.
    """
    return re.compile(_glob_to_regex(glob), re.IGNORECASE)


def path_matches(path: str, pattern: str) -> bool:
    # path_matches("people[0].name", "people[*].name") -> True
    # path_matches("identityType.name", "person.name") -> False
    return compile_glob(pattern).match(path) is not None


def resolve_rule(path: str, rules: Optional[Iterable[PathRule]]) -> Optional[PathRule]:
    # declaration order; first match wins
    for rule in rules or ():
        if path_matches(path, rule.match):
            return rule
    return None
