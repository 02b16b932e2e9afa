"""CLI payload output helpers."""

from __future__ import annotations

from ..core.serialize import dumps_json

ERROR_SCHEMA = "stateverify.error.v1"


def emit(payload: dict[str, object], as_json: bool) -> None:
    print(dumps_json(payload, pretty=not as_json))


def render_error(*, as_json: bool, message: str, code: int, kind: str = "generic_error") -> str:
    if as_json:
        return dumps_json(
            {
                "schema_name": ERROR_SCHEMA,
                "schema_version": 1,
                "tool": "stateverify",
                "status": "error",
                "errors": [{"code": code, "kind": kind, "message": message}],
            },
            pretty=False,
        )
    return f"verify: {message}"


__all__ = ["emit", "render_error"]
