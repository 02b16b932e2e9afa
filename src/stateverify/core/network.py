"""Centralized network boundary helpers."""

from __future__ import annotations

import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True)
class HttpResponse:
    url: str
    status: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)


def http_get(url: str, timeout_seconds: float = 5, headers: Mapping[str, str] | None = None) -> HttpResponse:
    req = urllib.request.Request(url, method="GET", headers=dict(headers or {}))
    try:
        with urllib.request.urlopen(req, timeout=timeout_seconds) as resp:  # nosec - caller controls endpoint
            return HttpResponse(
                url=url,
                status=int(resp.status),
                body=resp.read().decode("utf-8", errors="replace"),
                headers={k.lower(): v for k, v in resp.headers.items()},
            )
    except urllib.error.HTTPError as exc:
        # Non-2xx statuses are answers, not transport failures.
        body = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
        return HttpResponse(url=url, status=int(exc.code), body=body, headers={k.lower(): v for k, v in (exc.headers or {}).items()})


__all__ = ["HttpResponse", "http_get"]
