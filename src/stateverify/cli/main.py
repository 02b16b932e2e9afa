from __future__ import annotations

import argparse
import os
import sys
from typing import Any

from .. import __version__
from ..config import parse_assignments, resolve_run_config
from ..core.context import RunContext
from ..core.logging import log_event
from ..errors import VerifyError
from ..exit_codes import ERR_CONFIG, ERR_INTERNAL, OK
from ..orchestrator import Orchestrator
from ..report import render_json, render_text
from .output import emit, render_error


def _rules_options() -> argparse.ArgumentParser:
    shared = argparse.ArgumentParser(add_help=False)
    shared.add_argument("--rules", help="rule file (YAML/JSON) or builtin rule set name")
    shared.add_argument("--config", help="YAML/JSON run configuration file")
    shared.add_argument("--set", dest="assignments", action="append", default=[], metavar="KEY=VALUE", help="override a config key or rule parameter")
    shared.add_argument("--target-namespace", dest="namespace", help="namespace the probes query")
    shared.add_argument("--subset", help="tag to run (`quick`, `full`, ...) or `all`")
    shared.add_argument("--only", action="append", default=[], metavar="ID", help="run only this expectation id (repeatable)")
    shared.add_argument("--kubectl", help="kubectl command prefix, e.g. `microk8s kubectl`")
    shared.add_argument("--helm", help="helm command prefix")
    return shared


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="verify", description="Verify a deployed system against declared expectations.")
    p.add_argument("--version", action="version", version=f"verify {__version__}")
    p.add_argument("--json", action="store_true", help="emit JSON output")
    p.add_argument("--log-json", action="store_true", help="emit structured log lines as JSON on stderr")
    p.add_argument("--run-id", help="run identifier stamped on logs and reports")
    vg = p.add_mutually_exclusive_group()
    vg.add_argument("--verbose", action="store_true", help="enable verbose diagnostics")
    vg.add_argument("--quiet", action="store_true", help="only emit errors")
    sub = p.add_subparsers(dest="cmd", required=True)
    shared = _rules_options()

    run_p = sub.add_parser("run", parents=[shared], help="probe the target and report")
    run_p.add_argument("--timeout", type=float, help="global run timeout in seconds")
    run_p.add_argument("--probe-timeout", type=float, help="per-probe attempt timeout in seconds")
    run_p.add_argument("--retries", type=int, help="retries for transient probe failures")
    run_p.add_argument("--parallel", type=int, help="worker count for independent expectations")
    run_p.add_argument("--output", help="write the report to FILE (.json for JSON, text otherwise)")
    run_p.add_argument("--junit", help="write a JUnit XML report to FILE")
    run_p.add_argument("--format", choices=["text", "json"], default=None, help="stdout report format")

    sub.add_parser("list", parents=[shared], help="show the resolved execution order without probing")
    sub.add_parser("validate", parents=[shared], help="load and validate rules only")
    return p


def _cli_values(ns: argparse.Namespace) -> dict[str, Any]:
    values: dict[str, Any] = parse_assignments(ns.assignments)
    values.update(
        {
            "namespace": ns.namespace,
            "subset": ns.subset,
            "only": tuple(ns.only),
            "rules": ns.rules,
            "kubectl": ns.kubectl,
            "helm": ns.helm,
        }
    )
    if ns.cmd == "run":
        values.update(
            {
                "timeout": ns.timeout,
                "probe_timeout": ns.probe_timeout,
                "retries": ns.retries,
                "parallel": ns.parallel,
                "output": ns.output,
                "junit": ns.junit,
                "format": ns.format,
            }
        )
    return values


def _run(ctx: RunContext, as_json: bool) -> int:
    result = Orchestrator(ctx).run()
    if as_json:
        print(render_json(result.payload, pretty=False))
    else:
        print(render_text(result.payload, quiet=ctx.quiet, verbose=ctx.verbose))
    return result.exit_code


def _list(ctx: RunContext, as_json: bool) -> int:
    plan = Orchestrator(ctx).plan()
    rows = [
        {
            "id": row.id,
            "description": row.description,
            "tags": list(row.tags),
            "depends_on": list(row.depends_on),
            "severity": row.severity_on_failure.value,
            "probe": plan.probes[row.id].describe(),
            "predicate": row.predicate.kind,
        }
        for row in plan.selected
    ]
    if as_json:
        emit({"schema_version": 1, "tool": "stateverify", "status": "ok", "run_id": ctx.run_id, "rules": plan.rule_set.source, "expectations": rows}, True)
        return OK
    for index, row in enumerate(rows, start=1):
        deps = f" after {', '.join(row['depends_on'])}" if row["depends_on"] else ""
        print(f"{index:>3}. {row['id']} [{row['severity']}] ({','.join(row['tags']) or '-'}){deps}")
        print(f"     {row['probe']} | {row['predicate']}")
    return OK


def _validate(ctx: RunContext, as_json: bool) -> int:
    plan = Orchestrator(ctx).plan()
    payload = {
        "schema_version": 1,
        "tool": "stateverify",
        "status": "ok",
        "run_id": ctx.run_id,
        "rules": plan.rule_set.source,
        "expectations": len(plan.rule_set.expectations),
        "selected": len(plan.selected),
        "tags": list(plan.rule_set.tags()),
    }
    if as_json:
        emit(payload, True)
    else:
        print(f"rules OK: {payload['rules']} ({payload['expectations']} expectations, {payload['selected']} selected)")
    return OK


def main(argv: list[str] | None = None) -> int:
    raw_argv = argv if argv is not None else sys.argv[1:]
    p = build_parser()
    ns = p.parse_args(raw_argv)
    as_json = bool(ns.json) or getattr(ns, "format", None) == "json"
    if ns.json and getattr(ns, "format", None) == "text":
        print(render_error(as_json=False, message="conflicting output flags: use either --format text or --json", code=ERR_CONFIG), file=sys.stderr)
        return ERR_CONFIG
    try:
        config = resolve_run_config(ns.config, _cli_values(ns), env=dict(os.environ))
        ctx = RunContext.from_args(
            ns.run_id,
            config,
            output_format="json" if ns.json else None,
            log_json=ns.log_json,
            quiet=ns.quiet,
            verbose=ns.verbose,
        )
        as_json = ctx.output_format == "json"
        log_event(ctx, "info", "cli", "start", cmd=ns.cmd, rules=config.rules, fmt=ctx.output_format)
        if ns.cmd == "run":
            return _run(ctx, as_json)
        if ns.cmd == "list":
            return _list(ctx, as_json)
        if ns.cmd == "validate":
            return _validate(ctx, as_json)
        return ERR_CONFIG
    except VerifyError as exc:
        print(render_error(as_json=as_json, message=str(exc), code=exc.code, kind=exc.kind), file=sys.stderr)
        return exc.code
    except Exception as exc:  # pragma: no cover
        print(render_error(as_json=as_json, message=f"internal error: {exc}", code=ERR_INTERNAL), file=sys.stderr)
        return ERR_INTERNAL


def main_entry() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    main_entry()
