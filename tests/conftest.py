import subprocess
from pathlib import Path
from typing import BinaryIO
from typing import Sequence

import pytest

from build_worker.commands import CommandFailed
from build_worker.output import MemorySink
from build_worker.testcmd import TestCommand
from build_worker.workorder import WorkOrder


class FakeTestCommand(TestCommand):
    """Records invocations and writes canned output to the given streams."""

    def __init__(self, output: dict[str, list[tuple[str, bytes]]] | None = None, fail_for: set[str] | None = None) -> None:
        super().__init__(command=["fake-test"])
        self.output = output or {}
        self.fail_for = fail_for or set()
        self.calls: list[tuple[Path, str, Path | None]] = []
        self.files: dict[str, list[str]] = {}

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
        self.calls.append((root, package, cwd))
        self.files[package] = list(files)
        for stream, data in self.output.get(package, [("stdout", f"ok {package}\n".encode())]):
            (stderr if stream == "stderr" else stdout).write(data)
        if package in self.fail_for:
            raise CommandFailed(["fake-test", package], 1, "FAIL")

    def packages(self) -> list[str]:
        return [package for _, package, _ in self.calls]


@pytest.fixture()
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture()
def make_order(tmp_path: Path, sink: MemorySink):
    def _make(**overrides) -> WorkOrder:
        values = {
            "repo": "https://git.example.com/acme/svc.git",
            "package": "acme/svc",
            "branch": "main",
            "environment": "qa",
            "base_dir": tmp_path / "base",
            "output": sink,
        }
        values.update(overrides)
        return WorkOrder(**values)

    return _make


@pytest.fixture()
def upstream_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "upstream"
    repo.mkdir()
    subprocess.run(["git", "init", "-b", "main"], cwd=repo, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.name", "tester"], cwd=repo, check=True)
    subprocess.run(["git", "config", "user.email", "tester@example.com"], cwd=repo, check=True)
    (repo / "README.md").write_text("demo", encoding="utf-8")
    pkg = repo / "pkg"
    pkg.mkdir()
    (pkg / "test_thing.py").write_text("def test_thing():\n    assert True\n", encoding="utf-8")
    subprocess.run(["git", "add", "."], cwd=repo, check=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=repo, check=True, capture_output=True)
    subprocess.run(["git", "branch", "release/1.2"], cwd=repo, check=True)
    return repo


@pytest.fixture()
def commit_file():
    def _commit(repo: Path, name: str, text: str, message: str) -> None:
        (repo / name).write_text(text, encoding="utf-8")
        subprocess.run(["git", "add", name], cwd=repo, check=True)
        subprocess.run(["git", "commit", "-m", message], cwd=repo, check=True, capture_output=True)

    return _commit
