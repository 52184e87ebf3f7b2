"""Test configuration ensuring the project source tree is importable."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

if str(TESTS) in sys.path:
    sys.path.pop(sys.path.index(str(TESTS)))
sys.path.insert(1, str(TESTS))

# Import the project package eagerly so subsequent imports reuse it
importlib.import_module("dexcaliburn")

from dexcaliburn.channel import HOOKS, QueueChannel  # noqa: E402
from dexcaliburn.session import Session  # noqa: E402
from fake_runtime import FakeHostIO, FakeRuntime  # noqa: E402


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def host_io() -> FakeHostIO:
    return FakeHostIO()


@pytest.fixture
def channel() -> QueueChannel:
    return QueueChannel()


@pytest.fixture
def start_session(runtime, host_io, channel) -> Callable[..., Session]:
    """Return a factory that answers ``setup`` with ``hooks`` and starts a session."""

    def _start(hooks: str = "", **kwargs) -> Session:
        channel.post({"type": HOOKS, "payload": hooks})
        session = Session(runtime, channel, host_io, config_timeout=1.0, **kwargs)
        session.start()
        return session

    return _start
