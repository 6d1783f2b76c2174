from __future__ import annotations

import threading
from typing import Callable, List, Optional

import pytest

from climber.model import Project
from climber.process import ProcessResult, ProcessRunner
from climber.ui.console import Console, set_console


class FakeRunner(ProcessRunner):
    """
    Records every call; `handler(args, cwd)` decides the result.
    Default: exit 0 with "ok" on stdout.
    """

    def __init__(self, handler: Optional[Callable] = None):
        self.handler = handler
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def run(self, args, *, cwd=None, env=None, interactive=False, timeout=None):
        with self._lock:
            self.calls.append({"args": list(args), "cwd": cwd, "env": env, "interactive": interactive, "timeout": timeout})
        if self.handler is None:
            return ProcessResult(returncode=0, stdout="ok")
        return self.handler(list(args), cwd)

    def stream(self, args, *, cwd=None, env=None, on_line):
        proc = self.run(args, cwd=cwd, env=env)
        for line in proc.stdout.splitlines():
            if line.strip():
                on_line(line)
        return ProcessResult(returncode=proc.returncode)

    @property
    def argv(self) -> List[List[str]]:
        return [c["args"] for c in self.calls]


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def abc():
    return [Project("A", "a"), Project("B", "b"), Project("C", "c")]
