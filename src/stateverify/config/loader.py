"""Run configuration layering: file < environment < command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..core.context import CONFIG_KEYS, PARAM_PREFIX, RunConfig
from ..core.env import environ_snapshot, strip_prefix
from ..errors import ConfigError

ENV_PREFIX = "VERIFY_"
_ENV_PARAM_PREFIX = "PARAM_"


def _flatten(payload: Mapping[str, Any], source: str) -> dict[str, object]:
    flat: dict[str, object] = {}
    for key, value in payload.items():
        name = str(key).strip()
        if name == "params":
            if not isinstance(value, Mapping):
                raise ConfigError(f"{source}: `params` must be a mapping")
            for param, param_value in value.items():
                flat[f"{PARAM_PREFIX}{param}"] = param_value
            continue
        if isinstance(value, Mapping):
            raise ConfigError(f"{source}: config `{name}` must be a scalar or list")
        flat[name.replace("-", "_")] = value
    return flat


def load_config_file(path: str | Path) -> dict[str, object]:
    cfg_path = Path(path)
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {cfg_path}: {exc.strerror or exc}") from exc
    try:
        if cfg_path.suffix == ".json":
            payload = json.loads(text)
        else:
            payload = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot parse config file {cfg_path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ConfigError(f"config file {cfg_path} must contain a mapping")
    return _flatten(payload, cfg_path.as_posix())


def env_overrides(env: Mapping[str, str] | None = None) -> dict[str, object]:
    raw = strip_prefix(env if env is not None else environ_snapshot(ENV_PREFIX), ENV_PREFIX)
    out: dict[str, object] = {}
    for key, value in sorted(raw.items()):
        if key.startswith(_ENV_PARAM_PREFIX):
            out[f"{PARAM_PREFIX}{key[len(_ENV_PARAM_PREFIX):].lower()}"] = value
            continue
        name = key.lower()
        if name in CONFIG_KEYS:
            out[name] = value
    return out


def parse_assignments(items: list[str] | tuple[str, ...]) -> dict[str, object]:
    out: dict[str, object] = {}
    for item in items:
        key, sep, value = str(item).partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"invalid --set value `{item}`: expected KEY=VALUE")
        name = key.strip()
        out[name if name in CONFIG_KEYS or name.startswith(PARAM_PREFIX) else f"{PARAM_PREFIX}{name}"] = value
    return out


def resolve_run_config(
    config_file: str | None = None,
    cli_values: Mapping[str, object] | None = None,
    env: Mapping[str, str] | None = None,
) -> RunConfig:
    merged: dict[str, object] = {}
    if config_file:
        merged.update(load_config_file(config_file))
    merged.update(env_overrides(env))
    for key, value in (cli_values or {}).items():
        if value is None or value == () or value == []:
            continue
        merged[key] = value
    return RunConfig.from_mapping(merged)


__all__ = ["ENV_PREFIX", "env_overrides", "load_config_file", "parse_assignments", "resolve_run_config"]
