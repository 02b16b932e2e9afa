from __future__ import annotations

from .aggregator import (
    VERDICT_FAILED,
    VERDICT_SUCCESS,
    VERDICT_WARNINGS,
    Report,
    ReportAggregator,
    summarize,
    verdict_for,
)
from .render import GLYPHS, build_report_payload, render_json, render_junit, render_text, report_from_payload
from .sink import write_junit, write_report, write_text

__all__ = [
    "GLYPHS",
    "Report",
    "ReportAggregator",
    "VERDICT_FAILED",
    "VERDICT_SUCCESS",
    "VERDICT_WARNINGS",
    "build_report_payload",
    "render_json",
    "render_junit",
    "render_text",
    "report_from_payload",
    "summarize",
    "verdict_for",
    "write_junit",
    "write_report",
    "write_text",
]
