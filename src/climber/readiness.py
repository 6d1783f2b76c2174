# readiness.py
from __future__ import annotations

import json
import socket
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .model import ReadinessPolicy, ReadinessSpec
from .process import ProcessRunner, default_runner, merged_env, split_command
from .ui.console import get_console

# ----------------------------------------------------------------------
# Probes
# ----------------------------------------------------------------------
# Each probe answers one question: is the dependency usable right now?
# Probes return bool and never raise for an unreachable service.


def check_http(url: str, timeout_ms: int = 5000) -> bool:
    """GET `url`; ready iff it answers 2xx within the timeout."""
    try:
        with urllib.request.urlopen(url, timeout=timeout_ms / 1000) as response:
            return 200 <= response.status < 300
    except (urllib.error.URLError, OSError, ValueError):
        return False


def check_port(host: str, port: int, timeout_ms: int = 5000) -> bool:
    """Ready iff a TCP connection to host:port opens within the timeout."""
    try:
        with socket.create_connection((host, int(port)), timeout=timeout_ms / 1000):
            return True
    except (OSError, ValueError, TypeError):
        return False


def check_command(
    command: str,
    cwd: str | Path,
    timeout_ms: int = 5000,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    """Ready iff `command` exits 0 within the timeout (terminated otherwise)."""
    runner = runner or default_runner()
    try:
        result = runner.run(
            split_command(command),
            cwd=cwd,
            env=merged_env(),
            timeout=timeout_ms / 1000,
        )
    except (OSError, ValueError):
        return False
    return result.ok


def parse_compose_ps(stdout: str) -> List[dict]:
    """`docker compose ps --format json` prints one JSON object per line."""
    text = stdout.strip()
    if text.startswith("["):
        # older compose releases print a single JSON array
        return list(json.loads(text))
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def check_docker(
    service: str,
    cwd: str | Path,
    timeout_ms: int = 5000,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    """Ready iff the compose service is running and healthy (or has no healthcheck)."""
    runner = runner or default_runner()
    try:
        result = runner.run(
            ["docker", "compose", "ps", "--format", "json", service],
            cwd=cwd,
            env=merged_env(),
            timeout=timeout_ms / 1000,
        )
    except (OSError, ValueError):
        return False
    if not result.ok:
        return False

    try:
        services = parse_compose_ps(result.stdout)
    except (ValueError, TypeError):
        return False

    target = next((s for s in services if isinstance(s, dict) and s.get("Service") == service), None)
    if target is None:
        return False

    running = target.get("State") == "running"
    healthy = not target.get("Health") or target.get("Health") == "healthy"
    return running and healthy


# ----------------------------------------------------------------------
# Checker
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Dependency:
    """A dependency to wait for. `readiness=None` means always ready."""
    name: str
    readiness: Optional[ReadinessSpec] = None

    @property
    def kind(self) -> str:
        return self.readiness.type if self.readiness else "no check"


class ReadinessChecker:
    """
    Probe dispatcher plus retry loop.

    `sleep` is injectable so callers can drive the loop without real delays.
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.runner = runner or default_runner()
        self.sleep = sleep

    def check_one(self, spec: ReadinessSpec, context_path: str | Path) -> bool:
        """Run a single probe. Unknown probe types are treated as ready."""
        config = spec.config or {}
        timeout_ms = spec.timeout_ms

        if spec.type == "http":
            return check_http(config.get("url", ""), timeout_ms)
        if spec.type == "port":
            return check_port(config.get("host") or "localhost", config.get("port"), timeout_ms)
        if spec.type == "command":
            return check_command(config.get("command", ""), context_path, timeout_ms, self.runner)
        if spec.type == "docker":
            return check_docker(config.get("service", ""), context_path, timeout_ms, self.runner)

        get_console().print_warning(f"Unknown readiness check type: {spec.type}")
        return True

    def check_dependency(self, dep: Dependency, context_path: str | Path) -> bool:
        if dep.readiness is None:
            return True
        try:
            return self.check_one(dep.readiness, context_path)
        except Exception as e:
            get_console().print_warning(f"Readiness check failed for {dep.name}: {e}")
            return False

    def _round(self, deps: Sequence[Dependency], context_path: str | Path) -> List[Tuple[Dependency, bool]]:
        with ThreadPoolExecutor(max_workers=len(deps)) as pool:
            ready = list(pool.map(lambda d: self.check_dependency(d, context_path), deps))
        return list(zip(deps, ready))

    def wait_for(
        self,
        deps: Sequence[Dependency],
        context_path: str | Path,
        policy: Optional[ReadinessPolicy] = None,
    ) -> bool:
        """
        Probe every dependency concurrently, up to `policy.max_retries` rounds,
        sleeping `policy.retry_delay_ms` between rounds. True as soon as a
        round passes; False after the last round fails.

        command and docker probes run in `context_path`, the directory of the
        project that is waiting.
        """
        deps = list(deps)
        if not deps:
            return True

        policy = policy or ReadinessPolicy()
        console = get_console()
        console.print_info(f"Checking readiness of {len(deps)} dependencies...")

        waiting: List[Tuple[str, str]] = []
        for attempt in range(1, max(policy.max_retries, 1) + 1):
            results = self._round(deps, context_path)
            waiting = [(d.name, d.kind) for d, ok in results if not ok]
            if not waiting:
                console.print_success("All dependencies are ready")
                return True

            if attempt < policy.max_retries:
                console.print_readiness_attempt(attempt, policy.max_retries, waiting, policy.retry_delay_ms)
                self.sleep(policy.retry_delay_ms / 1000)

        # the last round doubles as the report of what is still down
        console.print_readiness_failed(policy.max_retries, waiting)
        return False


def wait_for_dependencies(
    deps: Sequence[Dependency],
    context_path: str | Path,
    policy: Optional[ReadinessPolicy] = None,
    runner: Optional[ProcessRunner] = None,
) -> bool:
    return ReadinessChecker(runner=runner).wait_for(deps, context_path, policy)
