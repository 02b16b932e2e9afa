from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping

from ..errors import ConfigError
from .clock import Clock, SystemClock
from .env import getenv

OutputFormat = Literal["text", "json"]

PARAM_PREFIX = "param."
REDACTED = "[REDACTED]"
_SECRET_RE = re.compile(r"(password|passwd|token|secret|api[_-]?key)", re.IGNORECASE)
_PARAM_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

CONFIG_KEYS = (
    "namespace",
    "subset",
    "only",
    "timeout",
    "probe_timeout",
    "retries",
    "retry_backoff",
    "parallel",
    "output",
    "junit",
    "format",
    "rules",
    "kubectl",
    "helm",
)


def _as_float(key: str, value: object, *, minimum: float) -> float:
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"config `{key}` must be a number, got `{value}`") from exc
    if parsed < minimum:
        raise ConfigError(f"config `{key}` must be >= {minimum}, got {parsed}")
    return parsed


def _as_int(key: str, value: object, *, minimum: int) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"config `{key}` must be an integer, got `{value}`") from exc
    if parsed < minimum:
        raise ConfigError(f"config `{key}` must be >= {minimum}, got {parsed}")
    return parsed


def _as_command(key: str, value: object) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        parts = tuple(str(item) for item in value if str(item).strip())
    else:
        parts = tuple(shlex.split(str(value)))
    if not parts:
        raise ConfigError(f"config `{key}` must name a command")
    return parts


def _as_ids(value: object) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        items = str(value).split(",")
    return tuple(item.strip() for item in items if item.strip())


def is_secret_key(name: str) -> bool:
    return bool(_SECRET_RE.search(name))


@dataclass(frozen=True)
class RunConfig:
    namespace: str = ""
    subset: str = "full"
    only: tuple[str, ...] = ()
    run_timeout_seconds: float = 300.0
    probe_timeout_seconds: float = 10.0
    retries: int = 1
    retry_backoff_seconds: float = 0.5
    parallelism: int = 1
    output: str = ""
    junit: str = ""
    output_format: OutputFormat = "text"
    rules: str = "grafana"
    kubectl_command: tuple[str, ...] = ("kubectl",)
    helm_command: tuple[str, ...] = ("helm",)
    params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "RunConfig":
        unknown = sorted(key for key in raw if key not in CONFIG_KEYS and not str(key).startswith(PARAM_PREFIX))
        if unknown:
            raise ConfigError(f"unknown config key(s): {', '.join(unknown)}")
        params: dict[str, str] = {}
        for key, value in raw.items():
            if not str(key).startswith(PARAM_PREFIX):
                continue
            name = str(key)[len(PARAM_PREFIX) :]
            if not _PARAM_NAME_RE.fullmatch(name):
                raise ConfigError(f"invalid rule parameter name `{name}`")
            params[name] = "" if value is None else str(value)
        fmt = str(raw.get("format", "text")).strip() or "text"
        if fmt not in ("text", "json"):
            raise ConfigError(f"config `format` must be `text` or `json`, got `{fmt}`")
        subset = str(raw.get("subset", "full")).strip() or "full"
        return cls(
            namespace=str(raw.get("namespace", "") or "").strip(),
            subset=subset,
            only=_as_ids(raw.get("only", ())),
            run_timeout_seconds=_as_float("timeout", raw.get("timeout", 300), minimum=0.001),
            probe_timeout_seconds=_as_float("probe_timeout", raw.get("probe_timeout", 10), minimum=0.001),
            retries=_as_int("retries", raw.get("retries", 1), minimum=0),
            retry_backoff_seconds=_as_float("retry_backoff", raw.get("retry_backoff", 0.5), minimum=0.0),
            parallelism=_as_int("parallel", raw.get("parallel", 1), minimum=1),
            output=str(raw.get("output", "") or "").strip(),
            junit=str(raw.get("junit", "") or "").strip(),
            output_format=fmt,  # type: ignore[arg-type]
            rules=str(raw.get("rules", "grafana") or "grafana").strip(),
            kubectl_command=_as_command("kubectl", raw.get("kubectl", "kubectl")),
            helm_command=_as_command("helm", raw.get("helm", "helm")),
            params=dict(sorted(params.items())),
        )

    def template_params(self, defaults: Mapping[str, str] | None = None) -> dict[str, str]:
        merged = {str(k): str(v) for k, v in (defaults or {}).items()}
        merged.update(self.params)
        if self.namespace:
            merged["namespace"] = self.namespace
        merged.setdefault("namespace", "default")
        return merged

    def snapshot(self) -> dict[str, object]:
        return {
            "namespace": self.namespace,
            "subset": self.subset,
            "only": list(self.only),
            "timeout": self.run_timeout_seconds,
            "probe_timeout": self.probe_timeout_seconds,
            "retries": self.retries,
            "retry_backoff": self.retry_backoff_seconds,
            "parallel": self.parallelism,
            "rules": self.rules,
            "kubectl": " ".join(self.kubectl_command),
            "helm": " ".join(self.helm_command),
            "params": {key: (REDACTED if is_secret_key(key) else value) for key, value in self.params.items()},
        }


@dataclass(frozen=True)
class RunContext:
    run_id: str
    config: RunConfig
    output_format: OutputFormat = "text"
    log_json: bool = False
    quiet: bool = False
    verbose: bool = False
    clock: Clock = field(default_factory=SystemClock)

    @classmethod
    def from_args(
        cls,
        run_id: str | None,
        config: RunConfig,
        output_format: OutputFormat | None = None,
        log_json: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        clock: Clock | None = None,
    ) -> "RunContext":
        default_run = f"verify-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}"
        resolved_run_id = run_id or getenv("RUN_ID", default_run) or default_run
        return cls(
            run_id=resolved_run_id,
            config=config,
            output_format=output_format or config.output_format,
            log_json=log_json,
            quiet=quiet,
            verbose=verbose,
            clock=clock or SystemClock(),
        )


__all__ = ["CONFIG_KEYS", "OutputFormat", "PARAM_PREFIX", "REDACTED", "RunConfig", "RunContext", "is_secret_key"]
