"""Invocation of the project's test runner for a single package."""
from __future__ import annotations

import os
from pathlib import Path
from pathlib import PurePosixPath
from typing import BinaryIO
from typing import Mapping
from typing import Sequence

from .commands import CommandExecutor

DEFAULT_TEST_COMMAND = ("python", "-m", "pytest", "-v")
DEFAULT_PATH_VARIABLE = "PYTHONPATH"


def path_environment(
    root: Path | str,
    variable: str = DEFAULT_PATH_VARIABLE,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Copy ``base`` (default: the process environment) with ``variable`` set to ``root`` only."""

    source = os.environ if base is None else base
    env = {key: value for key, value in source.items() if key != variable}
    env[variable] = str(root)
    return env


class TestCommand:
    """Run the configured command for one package with the path variable pinned to the workspace root."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        command: Sequence[str] = DEFAULT_TEST_COMMAND,
        path_variable: str = DEFAULT_PATH_VARIABLE,
    ) -> None:
        if not command:
            raise ValueError("test command must not be empty")
        self.executor = executor or CommandExecutor()
        self.command = list(command)
        self.path_variable = path_variable

    def run_tests(
        self,
        root: Path,
        package: str,
        stdout: BinaryIO,
        stderr: BinaryIO,
        *,
        cwd: Path | None = None,
        files: Sequence[str] = (),
    ) -> None:
        """Run the tests of one package.

        With ``files`` the command receives ``package/<file>`` for each name
        instead of the directory, so runners that recurse into directories
        (pytest does) stay inside the package.
        """

        targets = [PurePosixPath(package, name).as_posix() for name in files] or [package]
        self.executor.run(
            [*self.command, *targets],
            env=path_environment(root, self.path_variable),
            cwd=cwd or root,
            stdout=stdout,
            stderr=stderr,
        )


__all__ = ["DEFAULT_PATH_VARIABLE", "DEFAULT_TEST_COMMAND", "TestCommand", "path_environment"]
