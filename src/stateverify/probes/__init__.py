from __future__ import annotations

from .base import (
    Probe,
    ProbeEmpty,
    ProbeEnv,
    ProbeFailure,
    ProbeKindRegistry,
    ProbeResult,
    ProbeSpec,
    ProbeValue,
    normalize,
)
from .helm import build_release_probe
from .http import build_http_probe
from .kubernetes import build_file_probe, build_resource_probe
from .local import build_config_probe, build_static_probe
from .retry import RetryPolicy


def default_probe_kinds() -> ProbeKindRegistry:
    registry = ProbeKindRegistry()
    registry.register(
        "k8s_resource",
        build_resource_probe,
        required=("resource",),
        optional=("name", "namespace", "selector", "field_selector", "cluster_scoped", "all_namespaces"),
    )
    registry.register("k8s_file", build_file_probe, required=("selector", "path"), optional=("namespace", "container", "format"))
    registry.register("helm_release", build_release_probe, required=("release",), optional=("namespace",))
    registry.register("http", build_http_probe, required=("url",), optional=("headers",))
    registry.register("config", build_config_probe, required=("key",))
    registry.register("static", build_static_probe, optional=("value",))
    return registry


__all__ = [
    "Probe",
    "ProbeEmpty",
    "ProbeEnv",
    "ProbeFailure",
    "ProbeKindRegistry",
    "ProbeResult",
    "ProbeSpec",
    "ProbeValue",
    "RetryPolicy",
    "default_probe_kinds",
    "normalize",
]
