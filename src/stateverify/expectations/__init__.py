from __future__ import annotations

from .evaluator import RUN_TIMED_OUT, dependency_skip, evaluate, skip_outcome
from .model import Expectation, Outcome, Predicate, Severity, Status
from .paths import MissingField, extract
from .predicates import PREDICATES, Verdict, check_predicate

__all__ = [
    "Expectation",
    "MissingField",
    "Outcome",
    "PREDICATES",
    "Predicate",
    "RUN_TIMED_OUT",
    "Severity",
    "Status",
    "Verdict",
    "check_predicate",
    "dependency_skip",
    "evaluate",
    "extract",
    "skip_outcome",
]
