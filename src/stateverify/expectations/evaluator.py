from __future__ import annotations

from typing import Any

from ..errors import ConfigError
from ..probes.base import ProbeEmpty, ProbeFailure, ProbeResult, ProbeValue
from .model import Expectation, Outcome, Status
from .paths import MissingField
from .predicates import apply

RUN_TIMED_OUT = "run timed out"


def _failure_evidence(result: ProbeFailure) -> dict[str, Any]:
    return {"error": result.cause, "transient": result.transient, "timed_out": result.timed_out}


def evaluate(expectation: Expectation, result: ProbeResult, *, duration_ms: int = 0, attempts: int = 1) -> Outcome:
    """Grade one probe result against the expectation's predicate.

    Probe failures map to the declared severity without running the predicate.
    A field the predicate needs but the value does not carry is always FAIL.
    """

    def outcome(status: Status, message: str, evidence: Any) -> Outcome:
        return Outcome(
            expectation_id=expectation.id,
            description=expectation.description,
            status=status,
            message=message,
            remediation="" if status is Status.PASS else expectation.remediation,
            evidence=evidence,
            severity_on_failure=expectation.severity_on_failure,
            duration_ms=duration_ms,
            attempts=attempts,
            tags=expectation.tags,
        )

    failed_status = expectation.severity_on_failure.status
    if isinstance(result, ProbeFailure):
        return outcome(failed_status, result.cause, _failure_evidence(result))
    if isinstance(result, ProbeEmpty):
        subject: Any = None
        evidence: Any = {"empty": result.detail} if result.detail else None
    elif isinstance(result, ProbeValue):
        subject = result.value
        evidence = result.value
    else:
        raise TypeError(f"unsupported probe result: {type(result).__name__}")
    try:
        verdict = apply(expectation.predicate, subject)
    except MissingField as exc:
        if subject is None:
            detail = result.detail if isinstance(result, ProbeEmpty) and result.detail else "probe returned no data"
            return outcome(Status.FAIL, f"{detail} ({exc})", evidence)
        return outcome(Status.FAIL, str(exc), evidence)
    except (ConfigError, LookupError, ValueError, TypeError) as exc:
        return outcome(Status.FAIL, f"evaluation error: {exc}", evidence)
    if verdict.passed:
        return outcome(Status.PASS, verdict.message, evidence)
    return outcome(failed_status, verdict.message, evidence)


def skip_outcome(expectation: Expectation, reason: str) -> Outcome:
    return Outcome(
        expectation_id=expectation.id,
        description=expectation.description,
        status=Status.SKIP,
        message=reason,
        severity_on_failure=expectation.severity_on_failure,
        attempts=0,
        tags=expectation.tags,
    )


def dependency_skip(expectation: Expectation, blocking: list[tuple[str, Status]]) -> Outcome:
    detail = ", ".join(f"{dep_id} is {status.value}" for dep_id, status in blocking)
    return skip_outcome(expectation, f"dependency not met: {detail}")


__all__ = ["RUN_TIMED_OUT", "dependency_skip", "evaluate", "skip_outcome"]
