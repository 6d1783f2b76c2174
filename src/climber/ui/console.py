"""Terminal output for climber commands."""

from __future__ import annotations

import sys
from typing import Iterable, Optional

RULE_WIDTH = 40


class Console:
    """
    Every user-visible line goes through here.

    Progress and results go to stdout; failures, warnings and debug lines go
    to stderr so they survive `climb ... > log`.
    """

    def __init__(self, debug: bool = False):
        """
        Args:
            debug: show tracebacks, full failure text and [DEBUG] lines
        """
        self.debug = debug

    @staticmethod
    def _err(line: str) -> None:
        print(line, file=sys.stderr)

    # ------------------------------------------------------------------
    # progress
    # ------------------------------------------------------------------

    def print_header(self, title: str) -> None:
        print(f"\n{title}")
        print("-" * len(title))

    def print_operation_started(self, operation: str, projects: Iterable[str]) -> None:
        """Announce an operation and the projects it resolved to."""
        names = list(projects)
        print(f"\n>> {operation} ({len(names)} project{'' if len(names) == 1 else 's'})")
        if names:
            print(f"   {', '.join(names)}")

    def print_order(self, label: str, names: Iterable[str]) -> None:
        print(f"{label}: {' -> '.join(names)}")

    def print_project_start(self, index: int, total: int, project: str, action: str) -> None:
        print(f"[{index}/{total}] {action} {project}...")

    def print_description(self, text: str) -> None:
        print(f"   {text}")

    def print_output(self, text: str) -> None:
        """Echo captured child output, skipping blank captures."""
        if text and text.strip():
            print(text.rstrip())

    def print_info(self, message: str) -> None:
        print(message)

    # ------------------------------------------------------------------
    # per-project outcome
    # ------------------------------------------------------------------

    def print_success(self, message: str) -> None:
        print(f"OK: {message}")

    def print_skipped(self, name: str, reason: str) -> None:
        print(f"SKIPPED: {name} ({reason})")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Report one failed project.

        Outside debug mode only the first line of `reason` is shown; stderr
        captured from a compose build can run to hundreds of lines.
        """
        self._err(f"FAILED: {name}")
        if exit_code is not None:
            self._err(f"   exit code {exit_code}")
        detail = reason if self.debug else (reason.splitlines()[0] if reason else "unknown error")
        self._err(f"   {detail}")
        if hint:
            self._err(f"   hint: {hint}")

    def print_summary(self, succeeded: int, skipped: int, failed: int, title: str = "SUMMARY") -> None:
        print()
        print("=" * RULE_WIDTH)
        print(title)
        print("=" * RULE_WIDTH)
        print(f"  Successful: {succeeded}")
        if skipped:
            print(f"  Skipped: {skipped}")
        if failed:
            print(f"  Failed: {failed}")

    # ------------------------------------------------------------------
    # readiness
    # ------------------------------------------------------------------

    def print_readiness_attempt(self, attempt: int, max_retries: int, waiting: list[tuple[str, str]], delay_ms: int) -> None:
        print(f"Attempt {attempt}/{max_retries}: {len(waiting)} dependencies not ready")
        for name, kind in waiting:
            print(f"   - {name} ({kind})")
        print(f"   next check in {delay_ms / 1000:g}s")

    def print_readiness_failed(self, max_retries: int, failing: list[tuple[str, str]]) -> None:
        self._err(f"Dependencies not ready after {max_retries} attempts:")
        for name, kind in failing:
            self._err(f"   - {name} ({kind})")

    # ------------------------------------------------------------------
    # problems
    # ------------------------------------------------------------------

    def print_warning(self, message: str) -> None:
        self._err(f"WARNING: {message}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print a command-level error block.

        Args:
            title: short headline, e.g. "Invalid workspace"
            message: what went wrong
            details: extra lines, indented under the message
            suggestion: how to fix it, printed last
        """
        self._err("")
        self._err(f"ERROR: {title}")
        self._err(message)
        for line in details or []:
            self._err(f"  {line}")
        if suggestion:
            self._err("")
            self._err(suggestion)

    def print_exception(self, exc: Exception) -> None:
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._err(f"Error: {exc}")

    def print_debug(self, message: str) -> None:
        if self.debug:
            self._err(f"[DEBUG] {message}")


# set by the CLI; library callers get a plain Console
_console: Optional[Console] = None


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    global _console
    _console = console
