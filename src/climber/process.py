# process.py
# The one place that spawns child processes. Everything else (commands,
# hooks, readiness probes, compose, git pulls) goes through ProcessRunner so
# tests can swap in a fake.

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def split_command(command: str) -> List[str]:
    """
    Naive whitespace split: `echo "a b"` becomes ['echo', '"a', 'b"'].
    Quotes are not interpreted.
    """
    return command.split()


def merged_env(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    env = os.environ.copy()
    env.update({k: str(v) for k, v in (extra or {}).items()})
    return env


class ProcessRunner:
    """
    Runs an executable and waits for it.

    - interactive=True: the child inherits this process's stdin/stdout/stderr,
      nothing is captured.
    - interactive=False: stdout/stderr are captured as text.
    - timeout (seconds): on expiry the child gets SIGTERM, then SIGKILL if it
      ignores it, and the result is marked timed_out.

    Spawn errors (executable not found, bad cwd) propagate as OSError.
    """

    kill_grace: float = 2.0

    def run(
        self,
        args: List[str],
        *,
        cwd: str | Path | None = None,
        env: Optional[Mapping[str, str]] = None,
        interactive: bool = False,
        timeout: float | None = None,
    ) -> ProcessResult:
        if not args:
            raise ValueError("empty command")

        pipe = None if interactive else subprocess.PIPE
        proc = subprocess.Popen(
            args,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            stdin=None if interactive else subprocess.DEVNULL,
            stdout=pipe,
            stderr=pipe,
            text=True,
        )

        try:
            out, err = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.terminate()
            try:
                out, err = proc.communicate(timeout=self.kill_grace)
            except subprocess.TimeoutExpired:
                proc.kill()
                out, err = proc.communicate()
            return ProcessResult(
                returncode=proc.returncode if proc.returncode is not None else -1,
                stdout=out or "",
                stderr=err or "",
                timed_out=True,
            )

        return ProcessResult(returncode=proc.returncode, stdout=out or "", stderr=err or "")

    def stream(
        self,
        args: List[str],
        *,
        cwd: str | Path | None = None,
        env: Optional[Mapping[str, str]] = None,
        on_line: Callable[[str], None],
    ) -> ProcessResult:
        """
        Run until exit, handing each output line (stdout and stderr merged)
        to `on_line` as it arrives. Nothing is kept in the result.
        """
        if not args:
            raise ValueError("empty command")

        proc = subprocess.Popen(
            args,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        try:
            for line in proc.stdout:
                if line.strip():
                    on_line(line.rstrip("\n"))
        except BaseException:
            proc.terminate()
            raise
        finally:
            proc.stdout.close()
            proc.wait()
        return ProcessResult(returncode=proc.returncode)


_default_runner: Optional[ProcessRunner] = None


def default_runner() -> ProcessRunner:
    global _default_runner
    if _default_runner is None:
        _default_runner = ProcessRunner()
    return _default_runner
