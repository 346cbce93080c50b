"""Discover test packages in a source tree and run them one by one."""
from __future__ import annotations

import fnmatch
import io
import logging
import os
from pathlib import Path
from typing import Iterator
from typing import Sequence

from . import metrics
from .commands import CommandFailed
from .errors import PipelineError
from .errors import Stage
from .testcmd import TestCommand
from .workorder import PackageTestResult
from .workorder import WorkOrder

logger = logging.getLogger(__name__)

DEFAULT_TEST_PATTERNS = ("test_*.py", "*_test.py")
SKIP_DIRS = frozenset({".git"})


def _raise(exc: OSError) -> None:
    raise exc


def is_test_file(name: str, patterns: Sequence[str] = DEFAULT_TEST_PATTERNS) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)


def list_packages_with_tests(
    root: Path,
    patterns: Sequence[str] = DEFAULT_TEST_PATTERNS,
) -> Iterator[str]:
    """Yield directories under ``root`` holding test files, relative to ``root``.

    Traversal is lexical and depth first, so the sequence is repeatable;
    calling again restarts it. Listing errors propagate as ``OSError``.
    """

    for current, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIP_DIRS)
        if any(is_test_file(name, patterns) for name in filenames):
            yield Path(os.path.relpath(current, root)).as_posix()


def list_test_files(directory: Path, patterns: Sequence[str] = DEFAULT_TEST_PATTERNS) -> list[str]:
    """Names of the test files directly inside ``directory``, sorted."""

    with os.scandir(directory) as entries:
        return sorted(entry.name for entry in entries if entry.is_file() and is_test_file(entry.name, patterns))


class UnitTestRunner:
    """Run every discovered test package and flush its output in one block."""

    def __init__(self, command: TestCommand, patterns: Sequence[str] = DEFAULT_TEST_PATTERNS) -> None:
        self.command = command
        self.patterns = tuple(patterns)

    def run_unit_tests(self, order: WorkOrder) -> None:
        for package in self._discover(order):
            self._run_package(order, package)

    def _discover(self, order: WorkOrder) -> Iterator[str]:
        try:
            yield from list_packages_with_tests(order.source_dir, self.patterns)
        except OSError as exc:
            path = Path(exc.filename) if exc.filename else order.source_dir
            logger.error("[%s] Error listing [%s]: %s", order.package, path, exc)
            raise PipelineError(Stage.TEST, order.package, path, "list", exc) from exc

    def _run_package(self, order: WorkOrder, package: str) -> None:
        directory = order.source_dir / package
        try:
            files = list_test_files(directory, self.patterns)
        except OSError as exc:
            logger.error("[%s] Error listing [%s]: %s", order.package, directory, exc)
            raise PipelineError(Stage.TEST, order.package, directory, "list", exc) from exc

        # Buffer the whole run so concurrent packages never interleave mid-output.
        buffer = io.BytesIO()
        failure: CommandFailed | None = None
        try:
            self.command.run_tests(
                order.workspace_dir,
                package,
                buffer,
                buffer,
                cwd=order.source_dir,
                files=files,
            )
        except CommandFailed as exc:
            failure = exc

        output = buffer.getvalue()
        result = PackageTestResult(package=package, output=output, passed=failure is None)
        order.test_results = [*order.test_results, result]
        metrics.record_package_test(result.passed)
        order.respond(Stage.TEST, order.source_dir / package, b"\n" + output)

        if failure is not None:
            logger.error("[%s] Tests failed for package %s: %s", order.package, package, failure)
            raise PipelineError(Stage.TEST, order.package, order.source_dir / package, "test", failure) from failure


__all__ = [
    "DEFAULT_TEST_PATTERNS",
    "UnitTestRunner",
    "is_test_file",
    "list_packages_with_tests",
    "list_test_files",
]
