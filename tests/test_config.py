from __future__ import annotations

import re
from pathlib import Path

import pytest

from stateverify.config import env_overrides, load_config_file, parse_assignments, resolve_run_config
from stateverify.core.context import REDACTED, RunConfig, RunContext
from stateverify.errors import ConfigError


def test_defaults() -> None:
    cfg = RunConfig.from_mapping({})
    assert cfg.probe_timeout_seconds == 10.0
    assert cfg.run_timeout_seconds == 300.0
    assert cfg.retries == 1
    assert cfg.parallelism == 1
    assert cfg.kubectl_command == ("kubectl",)
    assert cfg.template_params() == {"namespace": "default"}


def test_invalid_values_raise_config_error() -> None:
    with pytest.raises(ConfigError):
        RunConfig.from_mapping({"timeout": "soon"})
    with pytest.raises(ConfigError):
        RunConfig.from_mapping({"retries": -1})
    with pytest.raises(ConfigError):
        RunConfig.from_mapping({"format": "xml"})
    with pytest.raises(ConfigError):
        RunConfig.from_mapping({"colour": "blue"})
    with pytest.raises(ConfigError):
        RunConfig.from_mapping({"param.bad-name": "x"})


def test_layering_file_then_env_then_cli(tmp_path: Path) -> None:
    path = tmp_path / "verify.yaml"
    path.write_text("namespace: from-file\nretries: 4\nparams:\n  release: file-release\n", encoding="utf-8")
    env = {"VERIFY_NAMESPACE": "from-env", "VERIFY_PARAM_RELEASE": "env-release", "VERIFY_UNRELATED": "x", "HOME": "/root"}
    cfg = resolve_run_config(str(path), {"namespace": "from-cli", "retries": None, "only": ()}, env=env)
    assert cfg.namespace == "from-cli"
    assert cfg.retries == 4
    assert cfg.params == {"release": "env-release"}


def test_env_overrides_map_keys() -> None:
    raw = env_overrides({"VERIFY_PROBE_TIMEOUT": "3", "VERIFY_KUBECTL": "microk8s kubectl", "VERIFY_PARAM_INGRESS_HOST": "g.local"})
    assert raw == {"probe_timeout": "3", "kubectl": "microk8s kubectl", "param.ingress_host": "g.local"}
    assert RunConfig.from_mapping(raw).kubectl_command == ("microk8s", "kubectl")


def test_parse_assignments() -> None:
    assert parse_assignments(["retries=2", "ingress_host=grafana.local", "param.x=a=b"]) == {
        "retries": "2",
        "param.ingress_host": "grafana.local",
        "param.x": "a=b",
    }
    with pytest.raises(ConfigError):
        parse_assignments(["novalue"])


def test_config_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config_file(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_file(bad)


def test_snapshot_redacts_secrets() -> None:
    cfg = RunConfig.from_mapping({"param.admin_password": "hunter2", "param.release": "grafana"})
    snap = cfg.snapshot()
    assert snap["params"] == {"admin_password": REDACTED, "release": "grafana"}


def test_run_context_run_id(monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = RunConfig()
    assert RunContext.from_args("explicit", cfg).run_id == "explicit"
    monkeypatch.setenv("RUN_ID", "from-env")
    assert RunContext.from_args(None, cfg).run_id == "from-env"
    monkeypatch.delenv("RUN_ID")
    assert re.fullmatch(r"verify-\d{8}-\d{6}", RunContext.from_args(None, cfg).run_id)
