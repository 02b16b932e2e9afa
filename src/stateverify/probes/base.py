from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Union, runtime_checkable

from ..core.context import RunConfig
from ..core.network import HttpResponse, http_get
from ..core.process import CommandRunner, run_command
from ..errors import ConfigError


@dataclass(frozen=True)
class ProbeValue:
    value: Any


@dataclass(frozen=True)
class ProbeEmpty:
    detail: str = ""


@dataclass(frozen=True)
class ProbeFailure:
    cause: str
    transient: bool = False
    timed_out: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "cause", str(self.cause).strip() or "probe failed")


ProbeResult = Union[ProbeValue, ProbeEmpty, ProbeFailure]


def is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def normalize(value: Any, detail: str = "") -> ProbeResult:
    if isinstance(value, (ProbeValue, ProbeEmpty, ProbeFailure)):
        return value
    if is_empty_value(value):
        return ProbeEmpty(detail)
    return ProbeValue(value)


@runtime_checkable
class Probe(Protocol):
    kind: str

    def query(self, timeout_seconds: float) -> ProbeResult: ...

    def describe(self) -> str: ...


HttpGetter = Callable[..., HttpResponse]


@dataclass(frozen=True)
class ProbeEnv:
    """Collaborators handed to probe factories; swapped for fakes in tests."""

    config: RunConfig = field(default_factory=RunConfig)
    params: Mapping[str, str] = field(default_factory=dict)
    command_runner: CommandRunner = run_command
    http_getter: HttpGetter = http_get

    @property
    def namespace(self) -> str:
        return str(self.params.get("namespace") or self.config.namespace or "default")


@dataclass(frozen=True)
class ProbeSpec:
    kind: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", str(self.kind).strip())
        object.__setattr__(self, "params", dict(self.params))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ProbeSpec":
        params = {str(k): v for k, v in raw.items() if k != "kind"}
        return cls(kind=str(raw.get("kind", "")), params=params)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **self.params}


ProbeFactory = Callable[[Mapping[str, Any], ProbeEnv], Probe]


@dataclass(frozen=True)
class ProbeKind:
    kind: str
    factory: ProbeFactory
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()


class ProbeKindRegistry:
    def __init__(self) -> None:
        self._kinds: dict[str, ProbeKind] = {}

    def register(self, kind: str, factory: ProbeFactory, *, required: tuple[str, ...] = (), optional: tuple[str, ...] = ()) -> None:
        if kind in self._kinds:
            raise ValueError(f"probe kind `{kind}` already registered")
        self._kinds[kind] = ProbeKind(kind=kind, factory=factory, required=required, optional=optional)

    def kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._kinds))

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def check_params(self, spec: ProbeSpec) -> list[str]:
        entry = self._kinds.get(spec.kind)
        if entry is None:
            return [f"unknown probe kind `{spec.kind}` (known: {', '.join(self.kinds())})"]
        errors = [f"probe `{spec.kind}` requires param `{name}`" for name in entry.required if spec.params.get(name) in (None, "")]
        allowed = set(entry.required) | set(entry.optional)
        errors.extend(f"probe `{spec.kind}` does not accept param `{name}`" for name in sorted(spec.params) if name not in allowed)
        return errors

    def build(self, spec: ProbeSpec, env: ProbeEnv) -> Probe:
        errors = self.check_params(spec)
        if errors:
            raise ConfigError("; ".join(errors))
        return self._kinds[spec.kind].factory(spec.params, env)


def as_bool(value: Any, *, key: str = "") -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "yes", "on", "1"}:
        return True
    if text in {"false", "no", "off", "0", ""}:
        return False
    raise ConfigError(f"param `{key}` must be a boolean, got `{value}`")


__all__ = [
    "HttpGetter",
    "Probe",
    "ProbeEmpty",
    "ProbeEnv",
    "ProbeFactory",
    "ProbeFailure",
    "ProbeKind",
    "ProbeKindRegistry",
    "ProbeResult",
    "ProbeSpec",
    "ProbeValue",
    "as_bool",
    "is_empty_value",
    "normalize",
]
