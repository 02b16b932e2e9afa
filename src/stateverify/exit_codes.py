from __future__ import annotations

OK = 0
ERR_CHECKS_FAILED = 1
ERR_CONFIG = 2
ERR_SINK = 3
ERR_INTERNAL = 99

__all__ = ["ERR_CHECKS_FAILED", "ERR_CONFIG", "ERR_INTERNAL", "ERR_SINK", "OK"]
