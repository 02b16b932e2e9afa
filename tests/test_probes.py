from __future__ import annotations

import json
import socket
import urllib.error

import pytest

from fakes import FakeCommandRunner, FakeHttp, failed, ok
from stateverify.core.context import RunConfig
from stateverify.core.network import HttpResponse
from stateverify.core.process import CommandResult
from stateverify.errors import ConfigError
from stateverify.probes import ProbeEmpty, ProbeEnv, ProbeFailure, ProbeSpec, ProbeValue, default_probe_kinds
from stateverify.probes.helm import HelmClient
from stateverify.probes.kubernetes import KubectlClient, classify_failure, is_ready, parse_file

PODS = {
    "items": [
        {
            "kind": "Pod",
            "metadata": {"name": "grafana-abc"},
            "status": {"phase": "Running", "conditions": [{"type": "Ready", "status": "True"}]},
        },
        {
            "kind": "Pod",
            "metadata": {"name": "grafana-def"},
            "status": {"phase": "Pending", "conditions": [{"type": "Ready", "status": "False"}]},
        },
    ]
}


def _build(kind: str, runner: FakeCommandRunner | None = None, http: FakeHttp | None = None, **params: object):
    env = ProbeEnv(
        config=RunConfig(namespace="grafana"),
        params={"namespace": "grafana", "ingress_enabled": "yes"},
        command_runner=runner or FakeCommandRunner(),
        http_getter=http or FakeHttp(),
    )
    return default_probe_kinds().build(ProbeSpec(kind, params), env)


def test_resource_probe_summarizes_lists() -> None:
    runner = FakeCommandRunner({"kubectl get pods -n grafana -l app=grafana -o json": ok(json.dumps(PODS))})
    result = _build("k8s_resource", runner, resource="pods", selector="app=grafana").query(5)
    assert isinstance(result, ProbeValue)
    assert result.value["count"] == 2
    assert result.value["ready"] == 1
    assert result.value["running"] == 1
    assert result.value["names"] == ["grafana-abc", "grafana-def"]


def test_resource_probe_empty_list_and_not_found_are_empty() -> None:
    runner = FakeCommandRunner(
        {
            "kubectl get pvc -n grafana -o json": ok(json.dumps({"items": []})),
            "kubectl get services grafana -n grafana -o json": failed('Error from server (NotFound): services "grafana" not found'),
        }
    )
    assert isinstance(_build("k8s_resource", runner, resource="pvc").query(5), ProbeEmpty)
    missing = _build("k8s_resource", runner, resource="services", name="grafana").query(5)
    assert isinstance(missing, ProbeEmpty)
    assert "not found" in missing.detail


def test_cluster_scoped_and_all_namespaces_flags() -> None:
    runner = FakeCommandRunner(default=ok(json.dumps({"items": [{"kind": "IngressClass", "metadata": {"name": "public"}}]})))
    _build("k8s_resource", runner, resource="ingressclasses", cluster_scoped=True).query(5)
    _build("k8s_resource", runner, resource="pods", all_namespaces="true").query(5)
    assert runner.calls[0] == ["kubectl", "get", "ingressclasses", "-o", "json"]
    assert "--all-namespaces" in runner.calls[1]
    with pytest.raises(ConfigError):
        _build("k8s_resource", runner, resource="pods", cluster_scoped=True, all_namespaces=True)


def test_configured_kubectl_prefix_is_used() -> None:
    runner = FakeCommandRunner(default=ok(json.dumps(PODS)))
    env = ProbeEnv(
        config=RunConfig(kubectl_command=("multipass", "exec", "microk8s", "--", "microk8s", "kubectl")),
        command_runner=runner,
    )
    default_probe_kinds().build(ProbeSpec("k8s_resource", {"resource": "pods"}), env).query(5)
    assert runner.calls[0][:6] == ["multipass", "exec", "microk8s", "--", "microk8s", "kubectl"]
    assert runner.calls[0][6:9] == ["get", "pods", "-n"]


def test_failure_classification() -> None:
    timed_out = CommandResult(code=124, stdout="", stderr="command timed out", duration_ms=1, timed_out=True)
    result = classify_failure("kubectl", ["get", "pods"], timed_out)
    assert isinstance(result, ProbeFailure) and result.transient and result.timed_out
    assert "timed out" in result.cause
    refused = classify_failure("kubectl", ["get", "pods"], failed("The connection to the server was refused: connection refused"))
    assert isinstance(refused, ProbeFailure) and refused.transient
    missing = classify_failure("kubectl", ["get", "pods"], failed("command not found: kubectl", code=127))
    assert isinstance(missing, ProbeFailure) and not missing.transient
    assert "unavailable" in missing.cause


def test_malformed_json_is_a_probe_failure() -> None:
    runner = FakeCommandRunner(default=ok("NAME READY\ngrafana 1/1"))
    result = _build("k8s_resource", runner, resource="pods").query(5)
    assert isinstance(result, ProbeFailure)
    assert "malformed" in result.cause


def test_client_refuses_mutating_verbs() -> None:
    client = KubectlClient(("kubectl",), FakeCommandRunner())
    with pytest.raises(ValueError):
        client._run(["delete", "pod", "x"], 5)
    with pytest.raises(ValueError):
        client._run(["exec", "-n", "ns", "pod", "--", "rm", "-rf", "/"], 5)


def test_helm_client_refuses_mutating_verbs() -> None:
    runner = FakeCommandRunner()
    client = HelmClient(("helm",), runner)
    for args in (["upgrade", "grafana", "grafana/grafana"], ["uninstall", "grafana"], ["rollback", "grafana", "1"], []):
        with pytest.raises(ValueError):
            client._run(args, 5)
    assert runner.calls == []
    client._run(["list", "-n", "grafana", "-o", "json"], 5)
    assert runner.calls == [["helm", "list", "-n", "grafana", "-o", "json"]]


def test_file_probe_reads_ini_from_first_running_pod() -> None:
    ini = "instance_name = grafana\n[database]\ntype = postgres\nhost = db:5432\n[server]\nroot_url = http://grafana.local\n"
    runner = FakeCommandRunner(
        {
            "kubectl get pods -n grafana -l app=grafana --field-selector status.phase=Running -o json": ok(json.dumps(PODS)),
            "kubectl exec -n grafana grafana-abc -- cat /etc/grafana/grafana.ini": ok(ini),
        }
    )
    result = _build("k8s_file", runner, selector="app=grafana", path="/etc/grafana/grafana.ini").query(5)
    assert isinstance(result, ProbeValue)
    assert result.value["database"] == {"type": "postgres", "host": "db:5432"}
    assert result.value["default"] == {"instance_name": "grafana"}


def test_file_probe_without_running_pod_fails() -> None:
    runner = FakeCommandRunner(default=ok(json.dumps({"items": []})))
    result = _build("k8s_file", runner, selector="app=grafana", path="/etc/grafana/grafana.ini").query(5)
    assert isinstance(result, ProbeFailure)
    assert "no running pod" in result.cause


def test_parse_file_formats() -> None:
    assert parse_file('{"a": 1}', "json") == {"a": 1}
    assert parse_file("a: 1\n", "yaml") == {"a": 1}
    assert parse_file("[s]\nk = v\n", "ini") == {"s": {"k": "v"}}
    assert parse_file("raw", "text") == "raw"


def test_is_ready_per_kind() -> None:
    assert is_ready({"kind": "PersistentVolumeClaim", "status": {"phase": "Bound"}})
    assert not is_ready({"kind": "PersistentVolumeClaim", "status": {"phase": "Pending"}})
    assert is_ready({"kind": "Deployment", "spec": {"replicas": 2}, "status": {"readyReplicas": 2}})
    assert not is_ready({"kind": "Deployment", "spec": {"replicas": 2}, "status": {"readyReplicas": 1}})
    assert is_ready({"kind": "Service"})


def test_helm_release_status() -> None:
    runner = FakeCommandRunner(
        {
            "helm status grafana -n grafana -o json": ok(json.dumps({"name": "grafana", "info": {"status": "deployed"}})),
            "helm status other -n grafana -o json": failed("Error: release: not found"),
        }
    )
    deployed = _build("helm_release", runner, release="grafana").query(5)
    assert isinstance(deployed, ProbeValue)
    assert deployed.value["info"]["status"] == "deployed"
    assert isinstance(_build("helm_release", runner, release="other").query(5), ProbeEmpty)


def test_http_probe_returns_status_and_json() -> None:
    http = FakeHttp({"http://grafana.local/api/health": HttpResponse("http://grafana.local/api/health", 200, '{"database": "ok"}')})
    result = _build("http", http=http, url="http://grafana.local/api/health").query(5)
    assert isinstance(result, ProbeValue)
    assert result.value["status"] == 200
    assert result.value["json"] == {"database": "ok"}
    non_json = _build("http", http=FakeHttp(), url="http://grafana.local/login").query(5)
    assert isinstance(non_json, ProbeValue)
    assert non_json.value["status"] == 404
    assert non_json.value["json"] is None


def test_http_probe_transport_errors_are_transient() -> None:
    http = FakeHttp(
        {
            "http://a/": urllib.error.URLError(ConnectionRefusedError(111, "Connection refused")),
            "http://b/": urllib.error.URLError(socket.timeout("timed out")),
        }
    )
    refused = _build("http", http=http, url="http://a/").query(5)
    assert isinstance(refused, ProbeFailure) and refused.transient and not refused.timed_out
    slow = _build("http", http=http, url="http://b/").query(5)
    assert isinstance(slow, ProbeFailure) and slow.timed_out
    assert "timed out" in slow.cause


def test_config_and_static_probes() -> None:
    enabled = _build("config", key="ingress_enabled").query(5)
    assert enabled == ProbeValue(True)
    assert isinstance(_build("config", key="missing").query(5), ProbeEmpty)
    assert _build("static", value=[1, 2]).query(5) == ProbeValue([1, 2])
    assert isinstance(_build("static").query(5), ProbeEmpty)


def test_registry_rejects_bad_params() -> None:
    kinds = default_probe_kinds()
    assert kinds.check_params(ProbeSpec("http", {})) == ["probe `http` requires param `url`"]
    assert "does not accept param `verb`" in kinds.check_params(ProbeSpec("helm_release", {"release": "x", "verb": "rollback"}))[0]
    assert set(kinds.kinds()) == {"config", "helm_release", "http", "k8s_file", "k8s_resource", "static"}
