"""Runtime primitives shared by probes, runner and CLI."""
