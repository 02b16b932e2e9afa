"""kubectl-backed probes.

Only JSON output is consumed (`-o json`); nothing here parses table output.
The command prefix is configurable so a MicroK8s cluster inside a Multipass VM
works with `multipass exec microk8s -- microk8s kubectl`.
"""

from __future__ import annotations

import configparser
import json
import re
from dataclasses import dataclass
from typing import Any, Mapping

import yaml

from ..core.process import MISSING_TOOL_EXIT_CODE, CommandResult, CommandRunner
from ..errors import ConfigError
from .base import ProbeEmpty, ProbeEnv, ProbeFailure, ProbeResult, ProbeValue, as_bool, normalize

READ_ONLY_VERBS = frozenset({"get", "exec"})
_EXEC_ALLOWED = ("cat",)
_NOT_FOUND_RE = re.compile(r"(NotFound|not found)", re.IGNORECASE)
_TRANSIENT_RE = re.compile(
    r"(connection refused|unable to connect|i/o timeout|tls handshake timeout|serviceunavailable|"
    r"too many requests|etcdserver: request timed out|connection reset)",
    re.IGNORECASE,
)
_FILE_FORMATS = ("text", "ini", "json", "yaml")


def classify_failure(tool: str, args: list[str], result: CommandResult) -> ProbeResult:
    summary = f"{tool} {' '.join(args)}"
    if result.timed_out:
        return ProbeFailure(f"{summary} timed out", transient=True, timed_out=True)
    if result.code == MISSING_TOOL_EXIT_CODE:
        return ProbeFailure(f"{tool} unavailable: {result.stderr.strip()}")
    detail = result.stderr.strip() or result.stdout.strip() or f"exit code {result.code}"
    if _NOT_FOUND_RE.search(detail) and not _TRANSIENT_RE.search(detail):
        return ProbeEmpty(detail)
    return ProbeFailure(f"{summary} failed: {detail}", transient=bool(_TRANSIENT_RE.search(detail)))


def _condition_true(obj: Mapping[str, Any], condition: str) -> bool:
    for row in obj.get("status", {}).get("conditions", []) or []:
        if isinstance(row, Mapping) and row.get("type") == condition:
            return str(row.get("status")) == "True"
    return False


def is_ready(obj: Mapping[str, Any]) -> bool:
    kind = str(obj.get("kind", ""))
    status = obj.get("status", {}) or {}
    spec = obj.get("spec", {}) or {}
    if kind in {"Pod", "Node"}:
        return _condition_true(obj, "Ready")
    if kind in {"PersistentVolumeClaim", "PersistentVolume"}:
        return status.get("phase") == "Bound"
    if kind in {"Deployment", "StatefulSet", "ReplicaSet"}:
        wanted = int(spec.get("replicas", 1) or 0)
        return wanted > 0 and int(status.get("readyReplicas", 0) or 0) >= wanted
    if kind == "DaemonSet":
        wanted = int(status.get("desiredNumberScheduled", 0) or 0)
        return wanted > 0 and int(status.get("numberReady", 0) or 0) >= wanted
    if kind == "Job":
        return int(status.get("succeeded", 0) or 0) > 0
    return True


def summarize_items(items: list[Any]) -> dict[str, Any]:
    objects = [item for item in items if isinstance(item, Mapping)]
    return {
        "items": items,
        "count": len(items),
        "ready": sum(1 for item in objects if is_ready(item)),
        "running": sum(1 for item in objects if (item.get("status", {}) or {}).get("phase") == "Running"),
        "names": [str((item.get("metadata", {}) or {}).get("name", "")) for item in objects],
    }


class KubectlClient:
    tool = "kubectl"

    def __init__(self, command: tuple[str, ...], runner: CommandRunner) -> None:
        self.command = tuple(command)
        self.runner = runner

    def _run(self, args: list[str], timeout_seconds: float) -> CommandResult:
        verb = args[0] if args else ""
        if verb not in READ_ONLY_VERBS:
            raise ValueError(f"kubectl verb `{verb}` is not read-only")
        if verb == "exec":
            tail = args[args.index("--") + 1 :] if "--" in args else []
            if not tail or tail[0] not in _EXEC_ALLOWED:
                raise ValueError(f"kubectl exec is restricted to {', '.join(_EXEC_ALLOWED)}")
        return self.runner([*self.command, *args], timeout_seconds)

    def _get_args(
        self,
        resource: str,
        namespace: str | None,
        name: str = "",
        selector: str = "",
        field_selector: str = "",
    ) -> list[str]:
        args = ["get", resource]
        if name:
            args.append(name)
        if namespace is None:
            pass
        elif namespace == "*":
            args.append("--all-namespaces")
        else:
            args.extend(["-n", namespace])
        if selector:
            args.extend(["-l", selector])
        if field_selector:
            args.extend(["--field-selector", field_selector])
        args.extend(["-o", "json"])
        return args

    def get(
        self,
        resource: str,
        namespace: str | None,
        timeout_seconds: float,
        name: str = "",
        selector: str = "",
        field_selector: str = "",
    ) -> ProbeResult:
        args = self._get_args(resource, namespace, name, selector, field_selector)
        result = self._run(args, timeout_seconds)
        if result.code != 0:
            return classify_failure(self.tool, args, result)
        try:
            payload = json.loads(result.stdout or "null")
        except json.JSONDecodeError as exc:
            return ProbeFailure(f"malformed kubectl response for {resource}: {exc.msg}")
        if isinstance(payload, Mapping) and isinstance(payload.get("items"), list):
            items = list(payload["items"])
            if not items:
                return ProbeEmpty(f"no {resource} found")
            return ProbeValue(summarize_items(items))
        return normalize(payload)

    def read_file(
        self,
        namespace: str,
        selector: str,
        path: str,
        timeout_seconds: float,
        container: str = "",
    ) -> ProbeResult:
        pods = self.get("pods", namespace, timeout_seconds, selector=selector, field_selector="status.phase=Running")
        if not isinstance(pods, ProbeValue):
            if isinstance(pods, ProbeEmpty):
                return ProbeFailure(f"no running pod matches `{selector}` in namespace {namespace}")
            return pods
        pod_name = pods.value["names"][0]
        args = ["exec", "-n", namespace, pod_name]
        if container:
            args.extend(["-c", container])
        args.extend(["--", "cat", path])
        result = self._run(args, timeout_seconds)
        if result.code != 0:
            failure = classify_failure(self.tool, args, result)
            return failure if isinstance(failure, ProbeFailure) else ProbeEmpty(f"{path} not found in pod {pod_name}")
        return normalize(result.stdout)


def parse_file(text: str, fmt: str) -> Any:
    if fmt == "json":
        return json.loads(text)
    if fmt == "yaml":
        return yaml.safe_load(text)
    if fmt == "ini":
        parser = configparser.ConfigParser(interpolation=None, strict=False, default_section="__defaults__")
        # grafana.ini style files may carry keys before the first section header
        parser.read_string("[default]\n" + text)
        out: dict[str, dict[str, str]] = {}
        for section in parser.sections():
            values = {key: value for key, value in parser.items(section, raw=True)}
            if values or section != "default":
                out[section] = values
        return out
    return text


def _format_for(path: str, declared: str) -> str:
    fmt = declared.strip().lower()
    if fmt:
        if fmt not in _FILE_FORMATS:
            raise ConfigError(f"probe `k8s_file` format must be one of {', '.join(_FILE_FORMATS)}, got `{declared}`")
        return fmt
    lowered = path.lower()
    if lowered.endswith(".ini"):
        return "ini"
    if lowered.endswith(".json"):
        return "json"
    if lowered.endswith((".yaml", ".yml")):
        return "yaml"
    return "text"


@dataclass(frozen=True)
class KubernetesResourceProbe:
    client: KubectlClient
    resource: str
    namespace: str | None
    name: str = ""
    selector: str = ""
    field_selector: str = ""
    kind: str = "k8s_resource"

    def query(self, timeout_seconds: float) -> ProbeResult:
        return self.client.get(
            self.resource,
            self.namespace,
            timeout_seconds,
            name=self.name,
            selector=self.selector,
            field_selector=self.field_selector,
        )

    def describe(self) -> str:
        target = f"{self.resource}/{self.name}" if self.name else self.resource
        scope = "cluster" if self.namespace is None else f"ns={self.namespace}"
        sel = f" selector={self.selector}" if self.selector else ""
        return f"kubectl get {target} ({scope}){sel}"


@dataclass(frozen=True)
class KubernetesFileProbe:
    client: KubectlClient
    namespace: str
    selector: str
    path: str
    fmt: str = "text"
    container: str = ""
    kind: str = "k8s_file"

    def query(self, timeout_seconds: float) -> ProbeResult:
        result = self.client.read_file(self.namespace, self.selector, self.path, timeout_seconds, container=self.container)
        if not isinstance(result, ProbeValue):
            return result
        try:
            return normalize(parse_file(str(result.value), self.fmt))
        except (ValueError, yaml.YAMLError, configparser.Error) as exc:
            return ProbeFailure(f"cannot parse {self.path} as {self.fmt}: {exc}")

    def describe(self) -> str:
        return f"kubectl exec <pod -l {self.selector}> -- cat {self.path} (ns={self.namespace})"


def build_resource_probe(params: Mapping[str, Any], env: ProbeEnv) -> KubernetesResourceProbe:
    cluster_scoped = as_bool(params.get("cluster_scoped", False), key="cluster_scoped")
    all_namespaces = as_bool(params.get("all_namespaces", False), key="all_namespaces")
    if cluster_scoped and all_namespaces:
        raise ConfigError("probe `k8s_resource` cannot be both cluster_scoped and all_namespaces")
    namespace: str | None = None if cluster_scoped else ("*" if all_namespaces else str(params.get("namespace") or env.namespace))
    return KubernetesResourceProbe(
        client=KubectlClient(env.config.kubectl_command, env.command_runner),
        resource=str(params["resource"]),
        namespace=namespace,
        name=str(params.get("name", "") or ""),
        selector=str(params.get("selector", "") or ""),
        field_selector=str(params.get("field_selector", "") or ""),
    )


def build_file_probe(params: Mapping[str, Any], env: ProbeEnv) -> KubernetesFileProbe:
    path = str(params["path"])
    return KubernetesFileProbe(
        client=KubectlClient(env.config.kubectl_command, env.command_runner),
        namespace=str(params.get("namespace") or env.namespace),
        selector=str(params["selector"]),
        path=path,
        fmt=_format_for(path, str(params.get("format", "") or "")),
        container=str(params.get("container", "") or ""),
    )


__all__ = [
    "KubectlClient",
    "KubernetesFileProbe",
    "KubernetesResourceProbe",
    "READ_ONLY_VERBS",
    "build_file_probe",
    "build_resource_probe",
    "classify_failure",
    "is_ready",
    "parse_file",
    "summarize_items",
]
