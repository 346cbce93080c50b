"""Thin wrapper around subprocess for git and test invocations."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from typing import Mapping
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: bytes
    stderr: bytes


class CommandFailed(Exception):
    """Raised when a program exits non-zero or cannot be started."""

    def __init__(self, args: Sequence[str], returncode: int | None, detail: str = "") -> None:
        self.command = list(args)
        self.returncode = returncode
        self.detail = detail.strip()
        if returncode is None:
            message = f"{self.command[0]}: could not start"
        else:
            message = f"{' '.join(self.command)}: exit status {returncode}"
        if self.detail:
            message += f"\n{self.detail}"
        super().__init__(message)


class CommandExecutor:
    """Run external programs synchronously.

    There is no timeout: a hung program blocks the caller until it exits.
    """

    def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | str | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> CommandResult:
        cmd = [str(arg) for arg in args]
        merged = stdout is not None and stdout is stderr
        logger.debug("Running %s (cwd=%s)", cmd, cwd)
        try:
            proc = subprocess.run(
                cmd,
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merged else subprocess.PIPE,
                check=False,
            )
        except OSError as exc:
            raise CommandFailed(cmd, None, str(exc)) from exc

        out = proc.stdout or b""
        err = proc.stderr or b""
        if stdout is not None:
            stdout.write(out)
        if stderr is not None and not merged:
            stderr.write(err)

        result = CommandResult(args=cmd, returncode=proc.returncode, stdout=out, stderr=err)
        if proc.returncode != 0:
            detail = err if err else (b"" if stdout is not None else out)
            raise CommandFailed(cmd, proc.returncode, detail.decode("utf-8", errors="replace"))
        return result


__all__ = ["CommandExecutor", "CommandFailed", "CommandResult"]
