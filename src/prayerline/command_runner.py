from __future__ import annotations

from dataclasses import dataclass
import logging
import subprocess
from typing import Protocol, Sequence


class CommandRunner(Protocol):
    def run(
        self, args: Sequence[str], *, input_text: str, timeout: float | None
    ) -> subprocess.CompletedProcess[str]:
        ...


@dataclass
class SubprocessCommandRunner:
    def run(
        self, args: Sequence[str], *, input_text: str, timeout: float | None
    ) -> subprocess.CompletedProcess[str]:
        # Only stdout is relayed; stderr from the wrapped command is dropped.
        return subprocess.run(
            list(args),
            input=input_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
            text=True,
            timeout=timeout,
        )


@dataclass
class WrappedCommand:
    """An existing status-line command whose output is printed ahead of ours."""

    runner: CommandRunner
    args: Sequence[str]
    timeout_seconds: float = 5

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(self.__class__.__name__)

    def output(self, stdin_text: str) -> str:
        if not self.args:
            return ""
        try:
            result = self.runner.run(
                self.args, input_text=stdin_text, timeout=self.timeout_seconds
            )
        except subprocess.TimeoutExpired as exc:
            self._logger.warning(
                "Wrapped command timed out after %ss: %s", self.timeout_seconds, self.args
            )
            return _partial_output(exc.stdout)
        except OSError as exc:
            self._logger.warning("Wrapped command failed to start %s: %s", self.args, exc)
            return ""
        if result.returncode != 0:
            self._logger.info(
                "Wrapped command exited with %s: %s", result.returncode, self.args
            )
        return result.stdout or ""


def _partial_output(captured: bytes | str | None) -> str:
    # TimeoutExpired carries bytes even when the run was in text mode.
    if captured is None:
        return ""
    if isinstance(captured, bytes):
        return captured.decode("utf-8", errors="replace")
    return captured
