from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from ..core.process import CommandResult, CommandRunner
from .base import ProbeEnv, ProbeFailure, ProbeResult, normalize
from .kubernetes import classify_failure

READ_ONLY_VERBS = frozenset({"status", "list", "get"})


class HelmClient:
    tool = "helm"

    def __init__(self, command: tuple[str, ...], runner: CommandRunner) -> None:
        self.command = tuple(command)
        self.runner = runner

    def _run(self, args: list[str], timeout_seconds: float) -> CommandResult:
        verb = args[0] if args else ""
        if verb not in READ_ONLY_VERBS:
            raise ValueError(f"helm verb `{verb}` is not read-only")
        return self.runner([*self.command, *args], timeout_seconds)

    def release_status(self, release: str, namespace: str, timeout_seconds: float) -> ProbeResult:
        args = ["status", release, "-n", namespace, "-o", "json"]
        result = self._run(args, timeout_seconds)
        if result.code != 0:
            return classify_failure(self.tool, args, result)
        try:
            payload = json.loads(result.stdout or "null")
        except json.JSONDecodeError as exc:
            return ProbeFailure(f"malformed helm response for release {release}: {exc.msg}")
        return normalize(payload)


@dataclass(frozen=True)
class HelmReleaseProbe:
    client: HelmClient
    release: str
    namespace: str
    kind: str = "helm_release"

    def query(self, timeout_seconds: float) -> ProbeResult:
        return self.client.release_status(self.release, self.namespace, timeout_seconds)

    def describe(self) -> str:
        return f"helm status {self.release} -n {self.namespace}"


def build_release_probe(params: Mapping[str, Any], env: ProbeEnv) -> HelmReleaseProbe:
    return HelmReleaseProbe(
        client=HelmClient(env.config.helm_command, env.command_runner),
        release=str(params["release"]),
        namespace=str(params.get("namespace") or env.namespace),
    )


__all__ = ["HelmClient", "READ_ONLY_VERBS", "HelmReleaseProbe", "build_release_probe"]
