"""Field paths into probe values.

Syntax: dotted keys (`status.phase`), list indexes (`items[0]`), quoted keys for
names containing dots (`metadata.annotations["kubernetes.io/ingress.class"]`)
and `*` / `[*]` wildcards that fan out over every element of a list or mapping.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Mapping, Union

WILDCARD = "*"
Segment = Union[str, int]

_TOKEN_RE = re.compile(r"""\.?(?P<key>[^.\[\]]+)|\[(?P<index>-?\d+|\*|"[^"]*"|'[^']*')\]""")


class MissingField(LookupError):
    def __init__(self, path: str, segment: str) -> None:
        super().__init__(f"missing field `{segment}` in `{path}`")
        self.path = path
        self.segment = segment


@lru_cache(maxsize=512)
def parse_path(path: str) -> tuple[Segment, ...]:
    text = str(path).strip()
    if not text:
        return ()
    segments: list[Segment] = []
    pos = 0
    for match in _TOKEN_RE.finditer(text):
        if match.start() != pos:
            break
        pos = match.end()
        key = match.group("key")
        if key is not None:
            segments.append(key.strip())
            continue
        index = match.group("index")
        if index == WILDCARD:
            segments.append(WILDCARD)
        elif index[0] in "\"'":
            segments.append(index[1:-1])
        else:
            segments.append(int(index))
    if pos != len(text):
        raise ValueError(f"invalid field path `{path}` at offset {pos}")
    return tuple(segments)


def has_wildcard(path: str) -> bool:
    return WILDCARD in parse_path(path)


def _step(value: Any, segment: Segment, path: str) -> list[Any]:
    if segment == WILDCARD:
        if isinstance(value, Mapping):
            return list(value.values())
        if isinstance(value, (list, tuple)):
            return list(value)
        raise MissingField(path, WILDCARD)
    if isinstance(segment, int):
        if isinstance(value, (list, tuple)) and -len(value) <= segment < len(value):
            return [value[segment]]
        raise MissingField(path, f"[{segment}]")
    if isinstance(value, Mapping) and segment in value:
        return [value[segment]]
    raise MissingField(path, segment)


def extract(value: Any, path: str) -> list[Any]:
    """Every value addressed by `path`; exactly one unless the path has a wildcard."""
    current = [value]
    for segment in parse_path(path):
        nxt: list[Any] = []
        for item in current:
            nxt.extend(_step(item, segment, path))
        current = nxt
    return current


__all__ = ["MissingField", "WILDCARD", "extract", "has_wildcard", "parse_path"]
