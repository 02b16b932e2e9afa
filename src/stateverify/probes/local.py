"""Probes answered without touching the target: run parameters and literals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .base import ProbeEmpty, ProbeEnv, ProbeResult, normalize

_BOOL_WORDS = {"true": True, "yes": True, "on": True, "false": False, "no": False, "off": False}


def coerce_param(value: str) -> Any:
    return _BOOL_WORDS.get(value.strip().lower(), value)


@dataclass(frozen=True)
class ConfigProbe:
    key: str
    value: str | None
    kind: str = "config"

    def query(self, timeout_seconds: float) -> ProbeResult:
        if self.value is None:
            return ProbeEmpty(f"parameter `{self.key}` is not set")
        return normalize(coerce_param(self.value), f"parameter `{self.key}` is empty")

    def describe(self) -> str:
        return f"config parameter {self.key}"


@dataclass(frozen=True)
class StaticProbe:
    value: Any
    kind: str = "static"

    def query(self, timeout_seconds: float) -> ProbeResult:
        return normalize(self.value)

    def describe(self) -> str:
        return "static value"


def build_config_probe(params: Mapping[str, Any], env: ProbeEnv) -> ConfigProbe:
    key = str(params["key"])
    value = env.params.get(key)
    return ConfigProbe(key=key, value=None if value is None else str(value))


def build_static_probe(params: Mapping[str, Any], env: ProbeEnv) -> StaticProbe:
    return StaticProbe(value=params.get("value"))


__all__ = ["ConfigProbe", "StaticProbe", "build_config_probe", "build_static_probe", "coerce_param"]
