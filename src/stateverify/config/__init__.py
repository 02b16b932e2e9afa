from .loader import ENV_PREFIX, env_overrides, load_config_file, parse_assignments, resolve_run_config

__all__ = ["ENV_PREFIX", "env_overrides", "load_config_file", "parse_assignments", "resolve_run_config"]
