"""Predicate kinds applied to probe values.

Each predicate receives the probe value (``None`` for an empty probe result)
and its declared arguments, and returns a `Verdict`. Wildcard paths fan out and
require every addressed element to satisfy the predicate.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ..errors import ConfigError
from ..probes.base import as_bool, is_empty_value
from .model import Predicate
from .paths import MissingField, extract, has_wildcard, parse_path


@dataclass(frozen=True)
class Verdict:
    passed: bool
    message: str


PredicateFn = Callable[[Any, Mapping[str, Any]], Verdict]


@dataclass(frozen=True)
class PredicateKind:
    kind: str
    fn: PredicateFn
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()


def canonical(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def _fold(text: str, ignore_case: bool) -> str:
    return text.casefold() if ignore_case else text


def _label(path: str) -> str:
    return path or "value"


def _targets(subject: Any, path: str) -> list[Any]:
    if subject is None:
        raise MissingField(path or "<value>", path or "<value>")
    values = extract(subject, path)
    if not values and has_wildcard(path):
        raise MissingField(path, "*")
    return values


def _first(subject: Any, path: str) -> Any:
    values = extract(subject, path)
    if not values:
        raise MissingField(path, "*")
    return values[0]


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"`{value}` is not numeric")
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{value}` is not numeric") from exc


def _show(values: list[Any]) -> str:
    shown = ", ".join(canonical(v) for v in values[:5])
    return shown + (", ..." if len(values) > 5 else "")


def _elements(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        items = value.get("items")
        return list(items) if isinstance(items, list) else [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [] if is_empty_value(value) else [value]


def _counted(subject: Any, args: Mapping[str, Any]) -> int:
    path = str(args.get("path", "") or "")
    if subject is None:
        elements: list[Any] = []
    elif path and has_wildcard(path):
        elements = extract(subject, path)
    elif path:
        elements = _elements(_first(subject, path))
    else:
        elements = _elements(subject)
    identity = str(args.get("identity_key", "") or "")
    if identity:
        seen: set[str] = set()
        for element in elements:
            seen.add(canonical(_first(element, identity)))
        return len(seen)
    return len(elements)


def exists(subject: Any, args: Mapping[str, Any]) -> Verdict:
    path = str(args.get("path", "") or "")
    if subject is None:
        return Verdict(False, f"{_label(path)} not found")
    if not path:
        return Verdict(True, "present")
    try:
        values = extract(subject, path)
    except MissingField:
        return Verdict(False, f"{path} not found")
    present = [v for v in values if not is_empty_value(v)]
    if not present:
        return Verdict(False, f"{path} is empty")
    return Verdict(True, f"{path} present: {_show(present)}")


def absent(subject: Any, args: Mapping[str, Any]) -> Verdict:
    path = str(args.get("path", "") or "")
    if subject is None:
        return Verdict(True, f"{_label(path)} absent")
    if not path:
        return Verdict(False, "present")
    try:
        values = extract(subject, path)
    except MissingField:
        return Verdict(True, f"{path} absent")
    present = [v for v in values if not is_empty_value(v)]
    if present:
        return Verdict(False, f"{path} present: {_show(present)}")
    return Verdict(True, f"{path} absent")


def count_at_least(subject: Any, args: Mapping[str, Any]) -> Verdict:
    wanted = int(_as_number(args["min"]))
    found = _counted(subject, args)
    if found >= wanted:
        return Verdict(True, f"found {found} (at least {wanted} required)")
    return Verdict(False, f"found {found}, expected at least {wanted}")


def count_equals(subject: Any, args: Mapping[str, Any]) -> Verdict:
    wanted = int(_as_number(args["count"]))
    found = _counted(subject, args)
    if found == wanted:
        return Verdict(True, f"found {found}")
    return Verdict(False, f"found {found}, expected exactly {wanted}")


def field_equals(subject: Any, args: Mapping[str, Any]) -> Verdict:
    path = str(args.get("path", "") or "")
    ignore_case = as_bool(args.get("ignore_case", False), key="ignore_case")
    expected = canonical(args.get("expected"))
    values = _targets(subject, path)
    wrong = [v for v in values if _fold(canonical(v), ignore_case) != _fold(expected, ignore_case)]
    if wrong:
        return Verdict(False, f"{_label(path)} is {_show(wrong)}, expected {expected}")
    return Verdict(True, f"{_label(path)} is {expected}")


def field_matches(subject: Any, args: Mapping[str, Any]) -> Verdict:
    path = str(args.get("path", "") or "")
    flags = re.IGNORECASE if as_bool(args.get("ignore_case", False), key="ignore_case") else 0
    pattern = re.compile(str(args["pattern"]), flags)
    match = pattern.fullmatch if as_bool(args.get("full_match", False), key="full_match") else pattern.search
    values = _targets(subject, path)
    wrong = [v for v in values if match(canonical(v)) is None]
    if wrong:
        return Verdict(False, f"{_label(path)} is {_show(wrong)}, does not match /{pattern.pattern}/")
    return Verdict(True, f"{_label(path)} matches /{pattern.pattern}/")


def field_in(subject: Any, args: Mapping[str, Any]) -> Verdict:
    path = str(args.get("path", "") or "")
    ignore_case = as_bool(args.get("ignore_case", False), key="ignore_case")
    allowed = [canonical(v) for v in args["values"]]
    folded = {_fold(v, ignore_case) for v in allowed}
    values = _targets(subject, path)
    wrong = [v for v in values if _fold(canonical(v), ignore_case) not in folded]
    if wrong:
        return Verdict(False, f"{_label(path)} is {_show(wrong)}, expected one of {', '.join(allowed)}")
    return Verdict(True, f"{_label(path)} is {_show(values)}")


def _threshold(subject: Any, args: Mapping[str, Any], *, at_least: bool) -> Verdict:
    path = str(args.get("path", "") or "")
    bound = _as_number(args["min" if at_least else "max"])
    values = _targets(subject, path)
    try:
        numbers = [_as_number(v) for v in values]
    except ValueError as exc:
        return Verdict(False, f"{_label(path)}: {exc}")
    relation = ">=" if at_least else "<="
    wrong = [n for n in numbers if (n < bound if at_least else n > bound)]
    if wrong:
        return Verdict(False, f"{_label(path)} is {_show(wrong)}, expected {relation} {canonical(bound)}")
    return Verdict(True, f"{_label(path)} is {_show(numbers)} ({relation} {canonical(bound)})")


def field_at_least(subject: Any, args: Mapping[str, Any]) -> Verdict:
    return _threshold(subject, args, at_least=True)


def field_at_most(subject: Any, args: Mapping[str, Any]) -> Verdict:
    return _threshold(subject, args, at_least=False)


def all_ready(subject: Any, args: Mapping[str, Any]) -> Verdict:
    if subject is None:
        return Verdict(False, "none found (0/0 ready)")
    ready_path = str(args.get("path", "ready") or "ready")
    total_path = str(args.get("total_path", "count") or "count")
    ready = int(_as_number(_first(subject, ready_path)))
    total = int(_as_number(_first(subject, total_path)))
    if total <= 0:
        return Verdict(False, f"none found ({ready}/{total} ready)")
    if ready == total:
        return Verdict(True, f"all ready ({ready}/{total})")
    return Verdict(False, f"not all ready ({ready}/{total})")


PREDICATES: dict[str, PredicateKind] = {
    row.kind: row
    for row in (
        PredicateKind("exists", exists, optional=("path",)),
        PredicateKind("absent", absent, optional=("path",)),
        PredicateKind("count_at_least", count_at_least, required=("min",), optional=("path", "identity_key")),
        PredicateKind("count_equals", count_equals, required=("count",), optional=("path", "identity_key")),
        PredicateKind("field_equals", field_equals, required=("expected",), optional=("path", "ignore_case")),
        PredicateKind("field_matches", field_matches, required=("pattern",), optional=("path", "full_match", "ignore_case")),
        PredicateKind("field_in", field_in, required=("values",), optional=("path", "ignore_case")),
        PredicateKind("field_at_least", field_at_least, required=("min",), optional=("path",)),
        PredicateKind("field_at_most", field_at_most, required=("max",), optional=("path",)),
        PredicateKind("all_ready", all_ready, optional=("path", "total_path")),
    )
}


def check_predicate(predicate: Predicate) -> list[str]:
    """Static validation run at rule load time."""
    entry = PREDICATES.get(predicate.kind)
    if entry is None:
        return [f"unknown predicate kind `{predicate.kind}` (known: {', '.join(sorted(PREDICATES))})"]
    args = predicate.args
    errors = [f"predicate `{predicate.kind}` requires `{name}`" for name in entry.required if name not in args]
    allowed = set(entry.required) | set(entry.optional)
    errors.extend(f"predicate `{predicate.kind}` does not accept `{name}`" for name in sorted(args) if name not in allowed)
    for key in ("path", "total_path", "identity_key"):
        if key in args:
            try:
                parse_path(str(args[key] or ""))
            except ValueError as exc:
                errors.append(str(exc))
    for key in ("min", "max", "count"):
        if key in args and key in allowed:
            try:
                _as_number(args[key])
            except ValueError:
                errors.append(f"predicate `{predicate.kind}` argument `{key}` must be numeric, got `{args[key]}`")
    for key in ("ignore_case", "full_match"):
        if key in args:
            try:
                as_bool(args[key], key=key)
            except ConfigError as exc:
                errors.append(f"predicate `{predicate.kind}` {exc}")
    if "pattern" in args:
        try:
            re.compile(str(args["pattern"]))
        except re.error as exc:
            errors.append(f"predicate `{predicate.kind}` pattern is not a valid regex: {exc}")
    if "values" in args and not isinstance(args["values"], (list, tuple)):
        errors.append(f"predicate `{predicate.kind}` argument `values` must be a list")
    return errors


def apply(predicate: Predicate, subject: Any) -> Verdict:
    return PREDICATES[predicate.kind].fn(subject, predicate.args)


__all__ = ["PREDICATES", "PredicateKind", "Verdict", "apply", "canonical", "check_predicate"]
