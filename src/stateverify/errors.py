from __future__ import annotations

from dataclasses import dataclass

from .exit_codes import ERR_CONFIG, ERR_INTERNAL, ERR_SINK


@dataclass
class VerifyError(Exception):
    message: str
    code: int = ERR_INTERNAL
    kind: str = "generic_error"

    def __str__(self) -> str:
        return self.message


class ConfigError(VerifyError):
    """Invalid run configuration or rule set; raised before any probe runs."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ERR_CONFIG, "config_error")


class SinkError(VerifyError):
    """The report could not be persisted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ERR_SINK, "sink_error")


class StateError(VerifyError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ERR_INTERNAL, "state_error")


__all__ = ["ConfigError", "SinkError", "StateError", "VerifyError"]
