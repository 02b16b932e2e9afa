__version__ = "0.1.0"

__all__ = [
    "__version__",
    "cli",
    "config",
    "contracts",
    "core",
    "errors",
    "exit_codes",
    "expectations",
    "orchestrator",
    "probes",
    "registry",
    "report",
    "runner",
]
