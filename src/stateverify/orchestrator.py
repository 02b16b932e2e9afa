from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from . import __version__
from .core.clock import utc_now_iso
from .core.context import RunContext
from .core.logging import log_event
from .core.network import http_get
from .core.process import CommandRunner, run_command
from .errors import ConfigError, StateError
from .expectations import Expectation
from .probes import Probe, ProbeEnv, ProbeKindRegistry
from .probes.base import HttpGetter
from .registry import RuleSet, load_rules
from .report import Report, ReportAggregator, build_report_payload, write_junit, write_report
from .runner import ExpectationRunner


class RunState(str, Enum):
    INIT = "INIT"
    LOADING_RULES = "LOADING_RULES"
    RUNNING = "RUNNING"
    REPORTING = "REPORTING"
    DONE = "DONE"
    FATAL = "FATAL"


_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.INIT: frozenset({RunState.LOADING_RULES, RunState.FATAL}),
    RunState.LOADING_RULES: frozenset({RunState.RUNNING, RunState.FATAL}),
    RunState.RUNNING: frozenset({RunState.REPORTING}),
    RunState.REPORTING: frozenset({RunState.DONE}),
    RunState.DONE: frozenset(),
    RunState.FATAL: frozenset(),
}


class RunStateMachine:
    def __init__(self) -> None:
        self.state = RunState.INIT
        self.history: list[RunState] = [RunState.INIT]

    def advance(self, target: RunState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise StateError(f"illegal run state transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)


@dataclass(frozen=True)
class Plan:
    """Rules loaded, subset selected and probes bound; nothing has touched the target yet."""

    rule_set: RuleSet
    selected: tuple[Expectation, ...]
    probes: Mapping[str, Probe]


@dataclass(frozen=True)
class RunResult:
    report: Report
    payload: dict[str, Any]
    states: tuple[RunState, ...] = field(default_factory=tuple)
    written: tuple[str, ...] = ()

    @property
    def exit_code(self) -> int:
        return self.report.exit_code


class Orchestrator:
    def __init__(
        self,
        ctx: RunContext,
        *,
        command_runner: CommandRunner = run_command,
        http_getter: HttpGetter = http_get,
        probe_kinds: ProbeKindRegistry | None = None,
    ) -> None:
        self.ctx = ctx
        self.command_runner = command_runner
        self.http_getter = http_getter
        self.probe_kinds = probe_kinds
        self.machine = RunStateMachine()

    def plan(self) -> Plan:
        cfg = self.ctx.config
        rule_set = load_rules(cfg, self.probe_kinds)
        selected = rule_set.select(cfg.subset, cfg.only)
        env = ProbeEnv(config=cfg, params=rule_set.params, command_runner=self.command_runner, http_getter=self.http_getter)
        bound = rule_set.bind(env, self.probe_kinds)
        log_event(self.ctx, "info", "registry", "loaded", rules=rule_set.source, expectations=len(rule_set.expectations), selected=len(selected))
        return Plan(rule_set=rule_set, selected=selected, probes={row.id: bound[row.id] for row in selected})

    def run(self) -> RunResult:
        self.machine.advance(RunState.LOADING_RULES)
        try:
            plan = self.plan()
        except ConfigError as exc:
            self.machine.advance(RunState.FATAL)
            log_event(self.ctx, "error", "orchestrator", "fatal", kind=exc.kind, error=str(exc))
            raise

        self.machine.advance(RunState.RUNNING)
        started = time.perf_counter()
        aggregator = ReportAggregator(order=[row.id for row in plan.selected])
        ExpectationRunner.from_context(self.ctx, plan.probes, aggregator).run(plan.selected)
        duration_ms = int((time.perf_counter() - started) * 1000)

        self.machine.advance(RunState.REPORTING)
        cfg = self.ctx.config
        report = aggregator.build(
            self.ctx.run_id,
            tool_version=__version__,
            generated_at=utc_now_iso(),
            rules=plan.rule_set.source,
            subset=",".join(cfg.only) if cfg.only else cfg.subset,
            duration_ms=duration_ms,
            config=cfg.snapshot(),
        )
        payload = build_report_payload(report)
        written: list[str] = []
        if cfg.output:
            written.append(str(write_report(cfg.output, payload)))
        if cfg.junit:
            written.append(str(write_junit(cfg.junit, payload)))
        log_event(self.ctx, "info", "orchestrator", "report", status=report.verdict, written=",".join(written) or "-")
        self.machine.advance(RunState.DONE)
        return RunResult(report=report, payload=payload, states=tuple(self.machine.history), written=tuple(written))


__all__ = ["Orchestrator", "Plan", "RunResult", "RunState", "RunStateMachine"]
