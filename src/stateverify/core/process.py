from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from typing import Callable

TIMEOUT_EXIT_CODE = 124
MISSING_TOOL_EXIT_CODE = 127


@dataclass(frozen=True)
class CommandResult:
    code: int
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False

    @property
    def combined_output(self) -> str:
        return (self.stdout + self.stderr).strip()


def run_command(cmd: list[str], timeout_seconds: float = 0) -> CommandResult:
    started = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            text=True,
            capture_output=True,
            check=False,
            timeout=(timeout_seconds if timeout_seconds > 0 else None),
        )
    except subprocess.TimeoutExpired as exc:
        stdout = exc.stdout.decode("utf-8", "replace") if isinstance(exc.stdout, bytes) else (exc.stdout or "")
        stderr = exc.stderr.decode("utf-8", "replace") if isinstance(exc.stderr, bytes) else (exc.stderr or "")
        return CommandResult(
            code=TIMEOUT_EXIT_CODE,
            stdout=stdout,
            stderr=(stderr + f"\ncommand timed out after {timeout_seconds}s").strip(),
            duration_ms=int((time.monotonic() - started) * 1000),
            timed_out=True,
        )
    except FileNotFoundError as exc:
        return CommandResult(
            code=MISSING_TOOL_EXIT_CODE,
            stdout="",
            stderr=f"command not found: {exc.filename or cmd[0]}",
            duration_ms=int((time.monotonic() - started) * 1000),
        )
    return CommandResult(
        code=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        duration_ms=int((time.monotonic() - started) * 1000),
    )


CommandRunner = Callable[[list[str], float], CommandResult]

__all__ = ["CommandResult", "CommandRunner", "MISSING_TOOL_EXIT_CODE", "TIMEOUT_EXIT_CODE", "run_command"]
