from __future__ import annotations

from typing import Any, Mapping
from xml.sax.saxutils import escape, quoteattr

from .. import __version__
from ..contracts import REPORT_SCHEMA, validate
from ..core.serialize import dumps_json
from ..expectations import Outcome, Status
from .aggregator import VERDICT_FAILED, VERDICT_SUCCESS, VERDICT_WARNINGS, Report

TOOL = "stateverify"

GLYPHS = {
    Status.PASS.value: "✅",
    Status.FAIL.value: "❌",
    Status.WARN.value: "⚠️ ",
    Status.SKIP.value: "⏭️ ",
}
_VERDICT_LABELS = {
    VERDICT_SUCCESS: "SUCCESS ✅",
    VERDICT_WARNINGS: "SUCCESS WITH WARNINGS ⚠️",
    VERDICT_FAILED: "FAILED ❌",
}


def build_report_payload(report: Report) -> dict[str, Any]:
    summary: dict[str, Any] = dict(report.summary)
    summary["duration_ms"] = int(report.duration_ms)
    payload: dict[str, Any] = {
        "schema_name": REPORT_SCHEMA,
        "schema_version": 1,
        "tool": TOOL,
        "tool_version": report.tool_version or __version__,
        "kind": "verify-report",
        "run_id": report.run_id,
        "status": report.verdict,
        "summary": summary,
        "outcomes": [row.to_dict() for row in report.outcomes],
    }
    if report.generated_at:
        payload["generated_at"] = report.generated_at
    if report.rules:
        payload["rules"] = report.rules
    if report.subset:
        payload["subset"] = report.subset
    if report.config:
        payload["config"] = dict(report.config)
    validate(REPORT_SCHEMA, payload)
    return payload


def report_from_payload(payload: Mapping[str, Any]) -> Report:
    validate(REPORT_SCHEMA, dict(payload))
    summary = payload.get("summary", {}) or {}
    return Report(
        run_id=str(payload["run_id"]),
        outcomes=tuple(Outcome.from_dict(row) for row in payload.get("outcomes", [])),
        tool_version=str(payload.get("tool_version", "")),
        generated_at=str(payload.get("generated_at", "")),
        rules=str(payload.get("rules", "")),
        subset=str(payload.get("subset", "")),
        duration_ms=int(summary.get("duration_ms", 0) or 0),
        config=dict(payload.get("config", {}) or {}),
    )


def render_json(payload: Mapping[str, Any], *, pretty: bool = True) -> str:
    return dumps_json(dict(payload), pretty=pretty)


def _outcome_lines(row: Mapping[str, Any]) -> list[str]:
    status = str(row.get("status", ""))
    lines = [f"{GLYPHS.get(status, '?')} {row.get('description') or row.get('id')}: {row.get('message', '')}"]
    remediation = str(row.get("remediation", "") or "")
    if remediation and status != Status.PASS.value:
        lines.append(f"   💡 Recommended action: {remediation}")
    return lines


def render_text(payload: Mapping[str, Any], *, quiet: bool = False, verbose: bool = False) -> str:
    rows = list(payload.get("outcomes", []))
    summary = payload.get("summary", {})
    status = str(payload.get("status", ""))
    if quiet:
        out = [f"FAIL {row['id']}: {row.get('message', '')}" for row in rows if row.get("status") == Status.FAIL.value]
        return "\n".join(out or [status.upper()])
    config = payload.get("config", {}) or {}
    out = [
        "VERIFICATION REPORT",
        "===================",
        f"Generated: {payload.get('generated_at', '-')}",
        f"Run ID: {payload.get('run_id', '')}",
        f"Rules: {payload.get('rules', '-')}",
        f"Subset: {payload.get('subset', '-')}",
        f"Namespace: {config.get('namespace') or '-'}",
        "",
        "VERIFICATION SUMMARY",
        "--------------------",
        f"Total Tests: {int(summary.get('total', 0))}",
        f"Passed: {int(summary.get('pass', 0))} ✅",
        f"Failed: {int(summary.get('fail', 0))} ❌",
        f"Warnings: {int(summary.get('warn', 0))} ⚠️",
        f"Skipped: {int(summary.get('skip', 0))} ⏭️",
        "",
        f"OVERALL STATUS: {_VERDICT_LABELS.get(status, status.upper())}",
        "",
        "DETAILED RESULTS",
        "----------------",
    ]
    for row in rows:
        out.extend(_outcome_lines(row))
        if verbose:
            out.append(f"   id={row.get('id')} attempts={row.get('attempts', 0)} duration_ms={row.get('duration_ms', 0)}")
    out.append("")
    out.append(f"duration_ms={int(summary.get('duration_ms', 0))}")
    return "\n".join(out)


def render_junit(payload: Mapping[str, Any], *, suite: str = TOOL) -> str:
    rows = list(payload.get("outcomes", []))
    failures = sum(1 for row in rows if row.get("status") == Status.FAIL.value)
    skipped = sum(1 for row in rows if row.get("status") == Status.SKIP.value)
    total_time = sum(int(row.get("duration_ms", 0) or 0) for row in rows) / 1000.0
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f"<testsuite name={quoteattr(suite)} tests=\"{len(rows)}\" failures=\"{failures}\" errors=\"0\" "
        f"skipped=\"{skipped}\" time=\"{total_time:.3f}\">",
    ]
    for row in rows:
        seconds = int(row.get("duration_ms", 0) or 0) / 1000.0
        message = str(row.get("message", ""))
        lines.append(f"  <testcase classname={quoteattr(suite)} name={quoteattr(str(row['id']))} time=\"{seconds:.3f}\">")
        if row.get("status") == Status.FAIL.value:
            body = escape(str(row.get("remediation", "") or message)[:2000])
            lines.append(f"    <failure message={quoteattr(message)}>{body}</failure>")
        elif row.get("status") == Status.SKIP.value:
            lines.append(f"    <skipped message={quoteattr(message)}/>")
        elif row.get("status") == Status.WARN.value:
            lines.append(f"    <system-out>{escape('WARN: ' + message)}</system-out>")
        lines.append("  </testcase>")
    lines.append("</testsuite>")
    return "\n".join(lines) + "\n"


__all__ = ["GLYPHS", "TOOL", "build_report_payload", "render_json", "render_junit", "render_text", "report_from_payload"]
