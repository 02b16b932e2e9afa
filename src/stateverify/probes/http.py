from __future__ import annotations

import json
import socket
import urllib.error
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..errors import ConfigError
from .base import HttpGetter, ProbeEnv, ProbeFailure, ProbeResult, ProbeValue

BODY_LIMIT = 4096


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return True
    reason = getattr(exc, "reason", None)
    return isinstance(reason, (TimeoutError, socket.timeout)) or "timed out" in str(reason or "")


@dataclass(frozen=True)
class HttpProbe:
    getter: HttpGetter
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    kind: str = "http"

    def query(self, timeout_seconds: float) -> ProbeResult:
        try:
            resp = self.getter(self.url, timeout_seconds=timeout_seconds, headers=self.headers)
        except (urllib.error.URLError, OSError) as exc:
            if _is_timeout(exc):
                return ProbeFailure(f"GET {self.url} timed out after {timeout_seconds}s", transient=True, timed_out=True)
            reason = getattr(exc, "reason", exc)
            return ProbeFailure(f"GET {self.url} failed: {reason}", transient=True)
        except ValueError as exc:
            return ProbeFailure(f"GET {self.url} failed: {exc}")
        try:
            parsed: Any = json.loads(resp.body) if resp.body.strip() else None
        except json.JSONDecodeError:
            parsed = None
        return ProbeValue(
            {
                "url": resp.url,
                "status": resp.status,
                "ok": 200 <= resp.status < 300,
                "body": resp.body[:BODY_LIMIT],
                "json": parsed,
                "headers": dict(resp.headers),
            }
        )

    def describe(self) -> str:
        return f"GET {self.url}"


def build_http_probe(params: Mapping[str, Any], env: ProbeEnv) -> HttpProbe:
    url = str(params["url"]).strip()
    if not url.startswith(("http://", "https://")):
        raise ConfigError(f"probe `http` url must start with http:// or https://, got `{url}`")
    headers = params.get("headers", {}) or {}
    if not isinstance(headers, Mapping):
        raise ConfigError("probe `http` headers must be a mapping")
    return HttpProbe(getter=env.http_getter, url=url, headers={str(k): str(v) for k, v in headers.items()})


__all__ = ["BODY_LIMIT", "HttpProbe", "build_http_probe"]
