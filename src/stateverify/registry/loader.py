"""Rule set loading: document -> schema check -> templating -> validated, ordered expectations."""

from __future__ import annotations

import json
import string
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from ..contracts import RULES_SCHEMA, schema_errors
from ..core.context import RunConfig
from ..errors import ConfigError
from ..expectations import Expectation, check_predicate
from ..expectations.predicates import canonical
from ..probes import Probe, ProbeEnv, ProbeKindRegistry, default_probe_kinds
from .graph import closure, cycle_paths, topological_order

SUBSET_ALL = "all"
SUBSET_FULL = "full"
_MAX_REPORTED = 10


def builtin_rule_sets() -> tuple[str, ...]:
    root = resources.files("stateverify.rules")
    return tuple(sorted(entry.name[: -len(".yaml")] for entry in root.iterdir() if entry.name.endswith(".yaml")))


def read_rule_document(source: str) -> tuple[dict[str, Any], str]:
    """Return the raw rule document and a label naming where it came from."""
    if source in builtin_rule_sets():
        text = resources.files("stateverify.rules").joinpath(f"{source}.yaml").read_text(encoding="utf-8")
        label = f"builtin:{source}"
        is_json = False
    else:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            known = ", ".join(builtin_rule_sets())
            raise ConfigError(f"cannot read rules `{source}`: {exc.strerror or exc} (builtin rule sets: {known})") from exc
        label = str(path)
        is_json = path.suffix == ".json"
    try:
        payload = json.loads(text) if is_json else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot parse rules {label}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"rules {label} must be a mapping with an `expectations` list")
    return payload, label


class _Placeholders(string.Template):
    """Only `${name}` is a placeholder; a bare `$` (regex anchors) is literal."""

    pattern = r"""
    \$(?:
      (?P<escaped>\$) |
      \{(?P<braced>[_a-z][_a-z0-9]*)\} |
      (?P<named>(?!)) |
      (?P<invalid>(?!))
    )
    """


def _render(value: Any, params: Mapping[str, str], where: str) -> Any:
    if isinstance(value, str):
        try:
            return _Placeholders(value).substitute(params)
        except KeyError as exc:
            raise ConfigError(f"{where}: unresolved placeholder ${{{exc.args[0]}}}") from exc
        except ValueError as exc:
            raise ConfigError(f"{where}: bad placeholder in `{value}`: {exc}") from exc
    if isinstance(value, Mapping):
        return {key: _render(item, params, where) for key, item in value.items()}
    if isinstance(value, list):
        return [_render(item, params, where) for item in value]
    return value


def _render_expectation(row: Mapping[str, Any], params: Mapping[str, str]) -> dict[str, Any]:
    where = f"expectation `{row.get('id', '?')}`"
    rendered = dict(row)
    for key in ("description", "remediation", "probe", "predicate"):
        if key in rendered:
            rendered[key] = _render(rendered[key], params, where)
    return rendered


def _limited(errors: Sequence[str]) -> str:
    head = "; ".join(errors[:_MAX_REPORTED])
    if len(errors) > _MAX_REPORTED:
        head += f"; additional errors omitted: {len(errors) - _MAX_REPORTED}"
    return head


@dataclass(frozen=True)
class RuleSet:
    """Validated expectations in execution order (dependencies first, then declaration order)."""

    name: str
    source: str
    expectations: tuple[Expectation, ...]
    params: Mapping[str, str] = field(default_factory=dict)
    description: str = ""

    def ids(self) -> tuple[str, ...]:
        return tuple(row.id for row in self.expectations)

    def get(self, expectation_id: str) -> Expectation:
        for row in self.expectations:
            if row.id == expectation_id:
                return row
        raise KeyError(expectation_id)

    def tags(self) -> tuple[str, ...]:
        return tuple(sorted({tag for row in self.expectations for tag in row.tags}))

    def _graph(self) -> dict[str, tuple[str, ...]]:
        return {row.id: row.depends_on for row in self.expectations}

    def select(self, subset: str = SUBSET_FULL, only: Sequence[str] = ()) -> tuple[Expectation, ...]:
        """Expectations for one run, in execution order.

        The selection must be closed under `depends_on`; a selected row whose
        dependency is left out is a configuration error.
        """
        if only:
            unknown = sorted(set(only) - set(self.ids()))
            if unknown:
                raise ConfigError(f"unknown expectation id(s): {', '.join(unknown)}")
            label = f"--only {','.join(only)}"
            keep = set(only)
        else:
            name = subset.strip() or SUBSET_FULL
            if name == SUBSET_ALL or (name == SUBSET_FULL and SUBSET_FULL not in self.tags()):
                return self.expectations
            label = f"subset `{name}`"
            keep = {row.id for row in self.expectations if name in row.tags}
            if not keep:
                known = ", ".join([SUBSET_ALL, *self.tags()])
                raise ConfigError(f"{label} selects no expectations (known subsets: {known})")
        graph = self._graph()
        outside = sorted(closure(keep, graph) - keep)
        if outside:
            needed_by = sorted(row_id for row_id in keep if set(graph[row_id]) - keep)
            raise ConfigError(
                f"{label} is missing dependencies {', '.join(outside)} (needed by {', '.join(needed_by)})"
            )
        return tuple(row for row in self.expectations if row.id in keep)

    def bind(self, env: ProbeEnv, probe_kinds: ProbeKindRegistry | None = None) -> dict[str, Probe]:
        kinds = probe_kinds or default_probe_kinds()
        probes: dict[str, Probe] = {}
        for row in self.expectations:
            try:
                probes[row.id] = kinds.build(row.probe, env)
            except ConfigError as exc:
                raise ConfigError(f"expectation `{row.id}`: {exc}") from exc
        return probes


def build_rule_set(
    document: Mapping[str, Any],
    *,
    source: str,
    config: RunConfig | None = None,
    probe_kinds: ProbeKindRegistry | None = None,
) -> RuleSet:
    errors = schema_errors(RULES_SCHEMA, document)
    if errors:
        raise ConfigError(f"rules {source} failed schema {RULES_SCHEMA}: {_limited(errors)}")
    cfg = config or RunConfig()
    kinds = probe_kinds or default_probe_kinds()
    defaults = {str(key): canonical(value) for key, value in (document.get("params") or {}).items()}
    params = cfg.template_params(defaults)

    rows: list[Expectation] = []
    seen: set[str] = set()
    problems: list[str] = []
    for raw in document["expectations"]:
        row = Expectation.from_mapping(_render_expectation(raw, params))
        if row.id in seen:
            problems.append(f"duplicate expectation id `{row.id}`")
            continue
        seen.add(row.id)
        rows.append(row)
        problems.extend(f"expectation `{row.id}`: {err}" for err in kinds.check_params(row.probe))
        problems.extend(f"expectation `{row.id}`: {err}" for err in check_predicate(row.predicate))
    for row in rows:
        for dep in row.depends_on:
            if dep not in seen:
                problems.append(f"expectation `{row.id}` depends on unknown id `{dep}`")
    if problems:
        raise ConfigError(f"invalid rules {source}: {_limited(problems)}")

    graph = {row.id: row.depends_on for row in rows}
    cycles = cycle_paths(graph)
    if cycles:
        rendered = [" -> ".join(cycle) for cycle in cycles]
        raise ConfigError(f"dependency cycle in rules {source}: {_limited(rendered)}")
    by_id = {row.id: row for row in rows}
    order = topological_order([row.id for row in rows], graph)
    return RuleSet(
        name=str(document.get("name") or source),
        source=source,
        expectations=tuple(by_id[row_id] for row_id in order),
        params=params,
        description=str(document.get("description", "") or ""),
    )


def load_rules(config: RunConfig, probe_kinds: ProbeKindRegistry | None = None) -> RuleSet:
    document, label = read_rule_document(config.rules)
    return build_rule_set(document, source=label, config=config, probe_kinds=probe_kinds)


__all__ = [
    "RuleSet",
    "SUBSET_ALL",
    "SUBSET_FULL",
    "build_rule_set",
    "builtin_rule_sets",
    "load_rules",
    "read_rule_document",
]
