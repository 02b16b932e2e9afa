from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ..errors import StateError
from ..exit_codes import ERR_CHECKS_FAILED, OK
from ..expectations import Outcome, Status

VERDICT_SUCCESS = "success"
VERDICT_WARNINGS = "success_with_warnings"
VERDICT_FAILED = "failed"


def summarize(outcomes: Sequence[Outcome]) -> dict[str, int]:
    counts = {status.value.lower(): 0 for status in Status}
    for row in outcomes:
        counts[row.status.value.lower()] += 1
    counts["total"] = len(outcomes)
    return counts


def verdict_for(outcomes: Sequence[Outcome]) -> str:
    if any(row.status is Status.FAIL for row in outcomes):
        return VERDICT_FAILED
    if any(row.status is Status.WARN for row in outcomes):
        return VERDICT_WARNINGS
    return VERDICT_SUCCESS


@dataclass(frozen=True)
class Report:
    run_id: str
    outcomes: tuple[Outcome, ...]
    tool_version: str = ""
    generated_at: str = ""
    rules: str = ""
    subset: str = ""
    duration_ms: int = 0
    config: Mapping[str, Any] = field(default_factory=dict)

    @property
    def summary(self) -> dict[str, int]:
        return summarize(self.outcomes)

    @property
    def verdict(self) -> str:
        return verdict_for(self.outcomes)

    @property
    def exit_code(self) -> int:
        return ERR_CHECKS_FAILED if self.verdict == VERDICT_FAILED else OK

    def by_status(self, status: Status) -> tuple[Outcome, ...]:
        return tuple(row for row in self.outcomes if row.status is status)


class ReportAggregator:
    """Append-only outcome collector; safe to record from worker threads."""

    def __init__(self, order: Sequence[str] = ()) -> None:
        self._lock = threading.Lock()
        self._position = {expectation_id: index for index, expectation_id in enumerate(order)}
        self._outcomes: list[Outcome] = []
        self._seen: set[str] = set()

    def record(self, outcome: Outcome) -> None:
        with self._lock:
            if outcome.expectation_id in self._seen:
                raise StateError(f"outcome for `{outcome.expectation_id}` already recorded")
            self._seen.add(outcome.expectation_id)
            self._outcomes.append(outcome)

    def __contains__(self, expectation_id: object) -> bool:
        with self._lock:
            return expectation_id in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def outcomes(self) -> tuple[Outcome, ...]:
        """Recorded outcomes in execution order; unknown ids keep arrival order at the end."""
        with self._lock:
            rows = list(enumerate(self._outcomes))
        tail = len(self._position)
        rows.sort(key=lambda pair: (self._position.get(pair[1].expectation_id, tail), pair[0]))
        return tuple(row for _, row in rows)

    def build(self, run_id: str, **meta: Any) -> Report:
        return Report(run_id=run_id, outcomes=self.outcomes(), **meta)


__all__ = [
    "Report",
    "ReportAggregator",
    "VERDICT_FAILED",
    "VERDICT_SUCCESS",
    "VERDICT_WARNINGS",
    "summarize",
    "verdict_for",
]
