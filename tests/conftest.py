from __future__ import annotations

import os
import socket
from typing import Any, Callable

import pytest
from hypothesis import settings

from stateverify.core.clock import FakeClock
from stateverify.core.context import RunConfig, RunContext

_ALLOWED_MARKERS = {"unit", "integration", "slow"}

settings.register_profile("stateverify", deadline=None, max_examples=60)
settings.load_profile("stateverify")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        names = {mark.name for mark in item.iter_markers()}
        if not names.intersection(_ALLOWED_MARKERS):
            item.add_marker("unit")


@pytest.fixture(autouse=True)
def no_network_for_unit(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> None:
    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("slow"):
        return

    def _blocked(*_args: object, **_kwargs: object) -> socket.socket:
        raise RuntimeError("network disabled in unit tests")

    def _blocked_connect(*_args: object, **_kwargs: object) -> None:
        raise RuntimeError("network disabled in unit tests")

    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket.socket, "connect", _blocked_connect)


@pytest.fixture(autouse=True)
def clean_verify_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("VERIFY_") or key == "RUN_ID":
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock(start=100.0)


@pytest.fixture
def make_ctx(fake_clock: FakeClock) -> Callable[..., RunContext]:
    def _make(clock: Any = None, **raw: Any) -> RunContext:
        config = RunConfig.from_mapping(raw)
        return RunContext.from_args("test-run", config, quiet=True, clock=clock if clock is not None else fake_clock)

    return _make
