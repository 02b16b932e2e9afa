"""Drive expectations through their probes and record graded outcomes.

Sequential mode walks the execution order. Parallel mode schedules an
expectation as soon as every dependency has an outcome, on a bounded pool;
the aggregator restores execution order afterwards, so both modes report the
same outcomes in the same order.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from .core.context import RunContext
from .core.logging import log_event
from .expectations import RUN_TIMED_OUT, Expectation, Outcome, Status, dependency_skip, evaluate, skip_outcome
from .probes import Probe, ProbeFailure, ProbeResult, RetryPolicy
from .report import ReportAggregator


def call_with_timeout(fn: Callable[[float], ProbeResult], timeout_seconds: float) -> ProbeResult:
    """Run one probe attempt on a daemon thread; abandon it once the timeout expires."""
    box: list[ProbeResult] = []

    def _target() -> None:
        try:
            box.append(fn(timeout_seconds))
        except Exception as exc:
            box.append(ProbeFailure(f"probe error: {exc.__class__.__name__}: {exc}"))

    worker = threading.Thread(target=_target, name="stateverify-probe", daemon=True)
    worker.start()
    worker.join(timeout_seconds)
    if worker.is_alive() or not box:
        return ProbeFailure(f"probe timed out after {timeout_seconds:g}s", transient=True, timed_out=True)
    return box[0]


@dataclass
class ExpectationRunner:
    ctx: RunContext
    probes: Mapping[str, Probe]
    aggregator: ReportAggregator
    retry: RetryPolicy
    probe_timeout_seconds: float = 10.0
    run_timeout_seconds: float = 300.0
    parallelism: int = 1

    @classmethod
    def from_context(cls, ctx: RunContext, probes: Mapping[str, Probe], aggregator: ReportAggregator) -> "ExpectationRunner":
        cfg = ctx.config
        return cls(
            ctx=ctx,
            probes=probes,
            aggregator=aggregator,
            retry=RetryPolicy(retries=cfg.retries, backoff_seconds=cfg.retry_backoff_seconds),
            probe_timeout_seconds=cfg.probe_timeout_seconds,
            run_timeout_seconds=cfg.run_timeout_seconds,
            parallelism=cfg.parallelism,
        )

    def _remaining(self, deadline: float) -> float:
        return deadline - self.ctx.clock.monotonic()

    def _record(self, outcome: Outcome) -> Outcome:
        self.aggregator.record(outcome)
        level = "warn" if outcome.status is Status.FAIL else "info"
        log_event(
            self.ctx,
            level,
            "runner",
            "outcome",
            id=outcome.expectation_id,
            status=outcome.status.value,
            attempts=outcome.attempts,
            duration_ms=outcome.duration_ms,
        )
        return outcome

    def _blocking(self, expectation: Expectation, done: Mapping[str, Outcome]) -> list[tuple[str, Status]]:
        # a dependency outside this run never passed
        statuses = [(dep, done[dep].status if dep in done else Status.SKIP) for dep in expectation.depends_on]
        return [(dep, status) for dep, status in statuses if status is not Status.PASS]

    def evaluate_one(self, expectation: Expectation, deadline: float) -> Outcome:
        probe = self.probes[expectation.id]
        started = time.perf_counter()

        def attempt(number: int) -> ProbeResult:
            remaining = self._remaining(deadline)
            if remaining <= 0:
                return ProbeFailure(RUN_TIMED_OUT, timed_out=True)
            log_event(self.ctx, "debug", "probe", "query", id=expectation.id, attempt=number, probe=probe.describe())
            return call_with_timeout(probe.query, min(self.probe_timeout_seconds, remaining))

        result, attempts = self.retry.execute(attempt, self.ctx.clock, deadline)
        if isinstance(result, ProbeFailure) and result.timed_out and self._remaining(deadline) <= 0:
            return skip_outcome(expectation, RUN_TIMED_OUT)
        duration_ms = int((time.perf_counter() - started) * 1000)
        return evaluate(expectation, result, duration_ms=duration_ms, attempts=attempts)

    def run(self, expectations: Sequence[Expectation]) -> tuple[Outcome, ...]:
        deadline = self.ctx.clock.monotonic() + self.run_timeout_seconds
        log_event(self.ctx, "info", "runner", "start", expectations=len(expectations), parallel=self.parallelism)
        if self.parallelism > 1:
            self._run_parallel(expectations, deadline)
        else:
            self._run_sequential(expectations, deadline)
        outcomes = self.aggregator.outcomes()
        log_event(self.ctx, "info", "runner", "finish", outcomes=len(outcomes))
        return outcomes

    def _run_sequential(self, expectations: Sequence[Expectation], deadline: float) -> None:
        done: dict[str, Outcome] = {}
        for expectation in expectations:
            if self._remaining(deadline) <= 0:
                outcome = skip_outcome(expectation, RUN_TIMED_OUT)
            else:
                blocking = self._blocking(expectation, done)
                outcome = dependency_skip(expectation, blocking) if blocking else self.evaluate_one(expectation, deadline)
            done[expectation.id] = self._record(outcome)

    def _run_parallel(self, expectations: Sequence[Expectation], deadline: float) -> None:
        done: dict[str, Outcome] = {}
        pending = list(expectations)
        selected = {row.id for row in expectations}
        running: dict[Future[Outcome], Expectation] = {}
        pool = ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="stateverify-runner")
        try:
            while pending or running:
                scheduled = True
                while scheduled:
                    scheduled = False
                    for expectation in list(pending):
                        if any(dep in selected and dep not in done for dep in expectation.depends_on):
                            continue
                        pending.remove(expectation)
                        blocking = self._blocking(expectation, done)
                        if blocking:
                            done[expectation.id] = self._record(dependency_skip(expectation, blocking))
                            scheduled = True
                        else:
                            running[pool.submit(self.evaluate_one, expectation, deadline)] = expectation
                if not running:
                    break
                remaining = self._remaining(deadline)
                if remaining <= 0:
                    break
                finished, _ = wait(list(running), timeout=remaining, return_when=FIRST_COMPLETED)
                for future in finished:
                    expectation = running.pop(future)
                    done[expectation.id] = self._record(future.result())
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        for expectation in [*running.values(), *pending]:
            if expectation.id not in done:
                done[expectation.id] = self._record(skip_outcome(expectation, RUN_TIMED_OUT))


__all__ = ["ExpectationRunner", "call_with_timeout"]
