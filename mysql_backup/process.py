"""Running the external mysqldump/mysql/gzip executables."""
from __future__ import annotations

import logging
import os
import subprocess
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .utils import mask_sensitive

LOGGER = logging.getLogger(__name__)


@dataclass
class CommandResult:
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(Exception):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, result: CommandResult, message: Optional[str] = None):
        self.result = result
        detail = result.stderr.strip()
        if message is None:
            message = f"Command '{result.command[0]}' exited with code {result.returncode}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


@dataclass
class ProcessRunner:
    """Run commands as argument lists, never through a shell.

    ``stdin``/``stdout``/``stderr`` may be file paths; the runner opens them.
    Streams that are not redirected to a file are captured as text.
    """

    secrets: Sequence[str] = field(default_factory=list)
    logger: logging.Logger = LOGGER

    def run(
        self,
        command: Sequence[str],
        *,
        stdin: Optional[Path] = None,
        stdout: Optional[Path] = None,
        stderr: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
    ) -> CommandResult:
        command = [str(part) for part in command]
        self.logger.debug("Running command: %s", self._mask(" ".join(command)))

        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        with ExitStack() as stack:
            stdin_handle = stack.enter_context(open(stdin, "rb")) if stdin else None
            stdout_handle = stack.enter_context(open(stdout, "wb")) if stdout else subprocess.PIPE
            stderr_handle = stack.enter_context(open(stderr, "wb")) if stderr else subprocess.PIPE
            try:
                completed = subprocess.run(
                    command,
                    stdin=stdin_handle,
                    stdout=stdout_handle,
                    stderr=stderr_handle,
                    env=full_env,
                )
            except FileNotFoundError as exc:
                result = CommandResult(command=command, returncode=127, stderr=str(exc))
                raise CommandError(result, f"Command '{command[0]}' not found.") from exc

        result = CommandResult(
            command=command,
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=self._mask(_decode(completed.stderr)),
        )
        if result.stdout:
            self.logger.debug("STDOUT: %s", result.stdout.strip())
        if result.stderr:
            self.logger.warning("STDERR: %s", result.stderr.strip())
        if check and not result.ok:
            raise CommandError(result)
        return result

    def _mask(self, value: str) -> str:
        return mask_sensitive(value, self.secrets)


def _decode(data) -> str:
    if not data:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


__all__ = ["CommandError", "CommandResult", "ProcessRunner"]
