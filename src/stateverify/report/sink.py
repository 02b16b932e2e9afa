from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from ..errors import SinkError
from .render import render_json, render_junit, render_text


def write_text(path: str | Path, text: str) -> Path:
    out = Path(path)
    tmp = out.with_name(f".{out.name}.tmp")
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
        tmp.replace(out)
    except OSError as exc:
        if tmp.exists():
            tmp.unlink()
        raise SinkError(f"cannot write report to {out}: {exc.strerror or exc}") from exc
    return out


def write_report(path: str | Path, payload: Mapping[str, Any]) -> Path:
    """JSON when the file name ends in `.json`, the text report otherwise."""
    out = Path(path)
    text = render_json(payload) if out.suffix == ".json" else render_text(payload)
    return write_text(out, text)


def write_junit(path: str | Path, payload: Mapping[str, Any]) -> Path:
    return write_text(path, render_junit(payload))


__all__ = ["write_junit", "write_report", "write_text"]
