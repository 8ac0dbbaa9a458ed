"""
Pytest configuration and fixtures.
"""

import io
import os
import time
from pathlib import Path
from typing import Callable

import pytest

# Keep the developer's settings out of the test run
for _key in [k for k in os.environ if k.startswith("PROCFLEET_")]:
    del os.environ[_key]

from procfleet.outlet import OutletFactory  # noqa: E402
from procfleet.supervisor import Supervisor  # noqa: E402

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs a POSIX shell and signals")


def wait_for(predicate: Callable[[], bool], timeout: float = 10.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def outlets(output) -> OutletFactory:
    """Uncolored outlets writing into ``output``."""
    return OutletFactory(stream=output, color=False)


@pytest.fixture
def write_procfile(tmp_path: Path) -> Callable[[str], Path]:
    def _write(text: str, name: str = "Procfile") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def make_supervisor(outlets, tmp_path):
    """Build a supervisor whose children run in ``tmp_path``; joins it on teardown."""
    created = []

    def _make(**kwargs) -> Supervisor:
        kwargs.setdefault("root", tmp_path)
        kwargs.setdefault("shutdown_grace_time", 2.0)
        supervisor = Supervisor(outlets, **kwargs)
        created.append(supervisor)
        return supervisor

    yield _make

    for supervisor in created:
        supervisor.teardown_now.trip()
        supervisor.signal_shutdown()
        assert supervisor.join(timeout=10), "replica threads left running"
