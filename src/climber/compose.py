# compose.py
from __future__ import annotations

import subprocess
from typing import List, Optional

from .errors import TOOL_HINTS, ClimberError


# ---------------------------------------------------------------------
# docker compose argument builders
# ---------------------------------------------------------------------

def up_args(service: Optional[str] = None) -> List[str]:
    args = ["docker", "compose", "up", "-d", "--build", "--remove-orphans"]
    if service:
        args.append(service)
    return args


def stop_args(service: Optional[str] = None) -> List[str]:
    args = ["docker", "compose", "stop"]
    if service:
        args.append(service)
    return args


def ps_args() -> List[str]:
    return ["docker", "compose", "ps"]


def logs_args(tail: int | str = 100, service: Optional[str] = None, follow: bool = False) -> List[str]:
    args = ["docker", "compose", "logs", "--tail", str(tail)]
    if service:
        args.append(service)
    if follow:
        args.append("--follow")
    return args


def clean_args(volumes: bool = False, remove_orphans: bool = False) -> List[str]:
    """`down` removes containers and networks; volumes only on request."""
    args = ["docker", "compose", "down"]
    if volumes:
        args.append("--volumes")
    if remove_orphans:
        args.append("--remove-orphans")
    return args


# ---------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------

def check_docker_available() -> None:
    """Raise a helpful error if `docker compose` can't be run."""
    try:
        subprocess.run(
            ["docker", "compose", "version"],
            capture_output=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        raise ClimberError(
            kind="docker_unavailable",
            project=None,
            message="Docker Compose is not available",
            details={"hint": TOOL_HINTS["docker"]},
        )
