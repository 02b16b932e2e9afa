from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from stateverify.core.context import RunConfig
from stateverify.errors import ConfigError
from stateverify.probes import ProbeEnv
from stateverify.registry import build_rule_set, closure, cycle_paths, load_rules, topological_order


def _row(row_id: str, *deps: str, tags: tuple[str, ...] = ("full",), **probe: object) -> dict[str, object]:
    return {
        "id": row_id,
        "description": f"check {row_id}",
        "tags": list(tags),
        "depends_on": list(deps),
        "probe": {"kind": "static", "value": True, **probe},
        "predicate": {"kind": "exists"},
    }


def _doc(*rows: dict[str, object], params: dict[str, object] | None = None) -> dict[str, object]:
    doc: dict[str, object] = {"schema_version": 1, "name": "test", "expectations": list(rows)}
    if params is not None:
        doc["params"] = params
    return doc


def test_topological_order_breaks_ties_by_declaration() -> None:
    graph = {"c": ["a"], "b": [], "a": [], "d": ["c", "b"]}
    assert topological_order(["c", "b", "a", "d"], graph) == ["b", "a", "c", "d"]


def test_cycle_paths_report_the_cycle() -> None:
    assert cycle_paths({"a": ["b"], "b": ["a"]}) == [["a", "b", "a"]]
    assert cycle_paths({"a": ["a"]}) == [["a", "a"]]
    assert cycle_paths({"a": ["b"], "b": []}) == []


def test_closure_follows_dependencies_transitively() -> None:
    assert closure(["c"], {"c": ["b"], "b": ["a"], "a": []}) == {"a", "b", "c"}


def test_mutual_dependency_fails_at_load_time() -> None:
    with pytest.raises(ConfigError) as err:
        build_rule_set(_doc(_row("a", "b"), _row("b", "a")), source="inline")
    assert "cycle" in str(err.value)
    assert "a -> b -> a" in str(err.value)


def test_validation_collects_duplicates_unknown_deps_and_kinds() -> None:
    doc = _doc(_row("a"), _row("a"), _row("b", "missing"), {"id": "c", "probe": {"kind": "warp"}, "predicate": {"kind": "exists"}})
    with pytest.raises(ConfigError) as err:
        build_rule_set(doc, source="inline")
    message = str(err.value)
    assert "duplicate expectation id `a`" in message
    assert "unknown id `missing`" in message
    assert "unknown probe kind `warp`" in message


def test_schema_violation_is_config_error() -> None:
    with pytest.raises(ConfigError) as err:
        build_rule_set({"expectations": [{"id": "Bad Id", "probe": {"kind": "static"}, "predicate": {"kind": "exists"}}]}, source="inline")
    assert "stateverify.rules.v1" in str(err.value)


def test_execution_order_puts_dependencies_first() -> None:
    rules = build_rule_set(_doc(_row("host", "enabled"), _row("enabled"), _row("other")), source="inline")
    assert rules.ids() == ("enabled", "host", "other")


def test_templates_resolve_from_defaults_config_and_namespace() -> None:
    doc = _doc(
        {
            "id": "svc",
            "description": "Service ${release} in ${namespace}",
            "probe": {"kind": "static", "value": "${release}"},
            "predicate": {"kind": "field_matches", "pattern": "^graf.*$"},
        },
        params={"release": "grafana", "namespace": "grafana"},
    )
    rules = build_rule_set(doc, source="inline", config=RunConfig(namespace="monitoring", params={"release": "grafana-2"}))
    row = rules.get("svc")
    assert row.description == "Service grafana-2 in monitoring"
    assert row.probe.params["value"] == "grafana-2"
    assert row.predicate.args["pattern"] == "^graf.*$"


def test_unresolved_placeholder_is_config_error() -> None:
    doc = _doc({"id": "svc", "probe": {"kind": "static", "value": "${nope}"}, "predicate": {"kind": "exists"}})
    with pytest.raises(ConfigError) as err:
        build_rule_set(doc, source="inline")
    assert "${nope}" in str(err.value)


def _ten_rows() -> dict[str, object]:
    rows = [_row(f"check-{i}", tags=("quick", "full") if i < 4 else ("full",)) for i in range(10)]
    return _doc(*rows)


def test_quick_subset_selects_tagged_rows_only() -> None:
    rules = build_rule_set(_ten_rows(), source="inline")
    assert [row.id for row in rules.select("quick")] == ["check-0", "check-1", "check-2", "check-3"]
    assert len(rules.select("full")) == 10
    assert len(rules.select("all")) == 10


def test_selection_is_exact_and_must_be_dependency_closed() -> None:
    doc = _doc(_row("base", tags=("full",)), _row("q", "base", tags=("quick", "full")), _row("solo", tags=("quick", "full")))
    rules = build_rule_set(doc, source="inline")
    with pytest.raises(ConfigError) as err:
        rules.select("quick")
    assert "missing dependencies base (needed by q)" in str(err.value)
    with pytest.raises(ConfigError):
        rules.select(only=["q"])
    assert [row.id for row in rules.select(only=["solo"])] == ["solo"]
    assert [row.id for row in rules.select(only=["q", "base"])] == ["base", "q"]


def test_unknown_subset_and_ids_are_config_errors() -> None:
    rules = build_rule_set(_ten_rows(), source="inline")
    with pytest.raises(ConfigError):
        rules.select("nightly")
    with pytest.raises(ConfigError):
        rules.select(only=["nope"])


def test_full_subset_without_full_tags_selects_everything() -> None:
    rules = build_rule_set(_doc(_row("a", tags=()), _row("b", tags=("web",))), source="inline")
    assert len(rules.select("full")) == 2


def test_bind_reports_builder_errors_with_expectation_id() -> None:
    doc = _doc({"id": "web", "probe": {"kind": "http", "url": "ftp://x"}, "predicate": {"kind": "exists"}})
    rules = build_rule_set(doc, source="inline")
    with pytest.raises(ConfigError) as err:
        rules.bind(ProbeEnv())
    assert "expectation `web`" in str(err.value)


def test_load_rules_reads_yaml_file(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text(yaml.safe_dump(_doc(_row("a"))), encoding="utf-8")
    rules = load_rules(RunConfig(rules=str(path)))
    assert rules.ids() == ("a",)
    assert rules.source == str(path)


def test_load_rules_missing_file_is_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as err:
        load_rules(RunConfig(rules=str(tmp_path / "absent.yaml")))
    assert "grafana" in str(err.value)
