from __future__ import annotations

import pytest

from stateverify.expectations import MissingField, Predicate, check_predicate, extract
from stateverify.expectations.paths import parse_path
from stateverify.expectations.predicates import apply, canonical

POD_LIST = {
    "items": [
        {"metadata": {"name": "grafana-0"}, "status": {"phase": "Running"}},
        {"metadata": {"name": "grafana-1"}, "status": {"phase": "Running"}},
    ],
    "count": 2,
    "ready": 2,
}


def _apply(kind: str, subject: object, **args: object):
    return apply(Predicate(kind, args), subject)


def test_parse_path_handles_indexes_wildcards_and_quoted_keys() -> None:
    assert parse_path("items[0].status.phase") == ("items", 0, "status", "phase")
    assert parse_path("items[*].name") == ("items", "*", "name")
    assert parse_path('metadata.annotations["kubernetes.io/ingress.class"]') == (
        "metadata",
        "annotations",
        "kubernetes.io/ingress.class",
    )
    assert parse_path("") == ()
    with pytest.raises(ValueError):
        parse_path("a..b")


def test_extract_fans_out_over_wildcards() -> None:
    assert extract(POD_LIST, "items[*].status.phase") == ["Running", "Running"]
    assert extract(POD_LIST, "items[-1].metadata.name") == ["grafana-1"]
    with pytest.raises(MissingField) as err:
        extract(POD_LIST, "items[0].spec.nodeName")
    assert "spec" in str(err.value)


def test_exists_and_absent_are_complementary() -> None:
    assert _apply("exists", POD_LIST).passed
    assert not _apply("exists", None).passed
    assert _apply("absent", None).passed
    assert _apply("exists", {"a": {"b": 1}}, path="a.b").passed
    assert not _apply("exists", {"a": {}}, path="a.b").passed
    assert _apply("absent", {"a": {}}, path="a.b").passed
    assert not _apply("exists", {"a": ""}, path="a").passed


def test_counts_use_items_and_identity_key() -> None:
    assert _apply("count_at_least", POD_LIST, min=2).passed
    assert not _apply("count_at_least", POD_LIST, min=3).passed
    assert _apply("count_equals", None, count=0).passed
    assert _apply("count_equals", POD_LIST, count=1, identity_key="status.phase").passed
    assert _apply("count_equals", POD_LIST, count=2, path="items").passed
    assert _apply("count_equals", ["a", "b", "c"], count=3).passed


def test_field_equals_requires_every_wildcard_match() -> None:
    assert _apply("field_equals", POD_LIST, path="items[*].status.phase", expected="Running").passed
    mixed = {"items": [{"phase": "Running"}, {"phase": "Pending"}]}
    verdict = _apply("field_equals", mixed, path="items[*].phase", expected="Running")
    assert not verdict.passed
    assert "Pending" in verdict.message


def test_field_equals_canonicalizes_scalars_and_case() -> None:
    assert _apply("field_equals", True, expected="true").passed
    assert _apply("field_equals", {"status": 200}, path="status", expected="200").passed
    assert _apply("field_equals", {"n": 3.0}, path="n", expected=3).passed
    assert not _apply("field_equals", {"t": "Postgres"}, path="t", expected="postgres").passed
    assert _apply("field_equals", {"t": "Postgres"}, path="t", expected="postgres", ignore_case=True).passed


def test_field_equals_on_empty_result_reports_missing_field() -> None:
    with pytest.raises(MissingField):
        _apply("field_equals", None, path="spec.type", expected="NodePort")


def test_field_matches_search_and_full_match() -> None:
    subject = {"version": "10.2.3"}
    assert _apply("field_matches", subject, path="version", pattern=r"^10\.").passed
    assert _apply("field_matches", subject, path="version", pattern=r"2\.3").passed
    assert not _apply("field_matches", subject, path="version", pattern=r"2\.3", full_match=True).passed
    assert _apply("field_matches", {"v": "OK"}, path="v", pattern="ok", ignore_case=True).passed


def test_field_in_and_thresholds() -> None:
    assert _apply("field_in", {"type": "postgres"}, path="type", values=["postgres", "postgresql"]).passed
    assert not _apply("field_in", {"type": "sqlite3"}, path="type", values=["postgres"]).passed
    assert _apply("field_at_least", {"replicas": 3}, path="replicas", min=2).passed
    assert not _apply("field_at_most", {"replicas": 3}, path="replicas", max=2).passed
    verdict = _apply("field_at_least", {"replicas": "many"}, path="replicas", min=1)
    assert not verdict.passed
    assert "not numeric" in verdict.message


def test_all_ready_never_passes_for_zero_total() -> None:
    assert _apply("all_ready", POD_LIST).passed
    assert not _apply("all_ready", {"ready": 1, "count": 2}).passed
    assert not _apply("all_ready", {"ready": 0, "count": 0}).passed
    assert not _apply("all_ready", None).passed
    assert _apply("all_ready", {"r": 1, "t": 1}, path="r", total_path="t").passed


def test_single_value_paths_resolving_to_nothing_raise_missing_field() -> None:
    with pytest.raises(MissingField):
        _apply("all_ready", {"pods": [], "count": 0}, path="pods[*].ready", total_path="count")
    with pytest.raises(MissingField):
        _apply("count_equals", {"items": [{"ports": []}]}, count=1, identity_key="ports[*]")
    assert not _apply("count_at_least", {"groups": []}, min=1, path="groups[*]").passed


def test_check_predicate_reports_static_errors() -> None:
    assert check_predicate(Predicate("field_equals", {"path": "a", "expected": 1})) == []
    assert "unknown predicate kind" in check_predicate(Predicate("nope", {}))[0]
    assert any("requires `min`" in err for err in check_predicate(Predicate("count_at_least", {})))
    assert any("does not accept `bogus`" in err for err in check_predicate(Predicate("exists", {"bogus": 1})))
    assert any("valid regex" in err for err in check_predicate(Predicate("field_matches", {"pattern": "("})))
    assert any("numeric" in err for err in check_predicate(Predicate("count_equals", {"count": "x"})))
    assert any("must be a list" in err for err in check_predicate(Predicate("field_in", {"values": "a"})))


def test_canonical_forms() -> None:
    assert canonical(False) == "false"
    assert canonical(None) == "null"
    assert canonical(2.0) == "2"
    assert canonical({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
