"""Centralized environment variable helpers."""

from __future__ import annotations

import os
from typing import Mapping


def getenv(name: str, default: str | None = None) -> str | None:
    return os.environ.get(name, default)


def environ_snapshot(prefix: str = "") -> dict[str, str]:
    return {key: value for key, value in sorted(os.environ.items()) if key.startswith(prefix)}


def strip_prefix(env: Mapping[str, str], prefix: str) -> dict[str, str]:
    return {key[len(prefix) :]: value for key, value in env.items() if key.startswith(prefix)}
