"""Git operations against an explicit working tree."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .commands import CommandExecutor
from .commands import CommandFailed

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x1f%an%x1f%ad%x1f%s%x1e"


@dataclass(frozen=True)
class CommitInfo:
    description: str
    commit: str
    author: str
    date: str


class GitClient:
    """Invoke git with ``--work-tree``/``--git-dir`` pointed at one directory."""

    def __init__(self, executor: CommandExecutor | None = None, git_bin: str = "git") -> None:
        self.executor = executor or CommandExecutor()
        self.git_bin = git_bin

    def is_repo(self, directory: Path) -> bool:
        return (Path(directory) / ".git").exists()

    def clone(self, url: str, directory: Path) -> None:
        self.executor.run([self.git_bin, "clone", url, str(directory)])

    def fetch(self, directory: Path) -> None:
        self._run_git(directory, ["fetch"])

    def pull(self, directory: Path) -> None:
        self._run_git(directory, ["pull"])

    def reset_hard(self, directory: Path) -> None:
        self._run_git(directory, ["reset", "--hard"])

    def clean(self, directory: Path) -> None:
        self._run_git(directory, ["clean", "-f", "-d"])

    def checkout(self, directory: Path, branch: str) -> None:
        self._run_git(directory, ["checkout", branch])

    def head(self, directory: Path) -> str:
        return self._run_git(directory, ["rev-parse", "HEAD"]).strip()

    def log(self, directory: Path, since: str | None = None) -> list[CommitInfo]:
        """Commits in ``since..HEAD``, newest first; only HEAD when ``since`` is None."""

        args = ["log", "--date=rfc", f"--pretty=format:{_LOG_FORMAT}"]
        if since:
            args.append(f"{since}..HEAD")
        else:
            args += ["-1", "HEAD"]
        return parse_log(self._run_git(directory, args))

    def _run_git(self, directory: Path, args: Iterable[str]) -> str:
        directory = Path(directory)
        cmd = [
            self.git_bin,
            f"--work-tree={directory}",
            f"--git-dir={directory / '.git'}",
            *args,
        ]
        result = self.executor.run(cmd)
        return result.stdout.decode("utf-8", errors="replace")


def parse_log(output: str) -> list[CommitInfo]:
    commits: list[CommitInfo] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        parts = record.split(_FIELD_SEP, 3)
        if len(parts) < 4:
            parts += [""] * (4 - len(parts))
        commit, author, date, subject = parts
        commits.append(CommitInfo(description=subject, commit=commit, author=author, date=date))
    return commits


class FakeGitClient(GitClient):
    """Testing double that records calls instead of running git."""

    def __init__(
        self,
        *,
        fail_on: Iterable[str] = (),
        commits: list[CommitInfo] | None = None,
    ) -> None:
        super().__init__(executor=CommandExecutor())
        self.calls: list[tuple[str, ...]] = []
        self.fail_on = set(fail_on)
        self.commits = list(commits or [])
        self._head = "0" * 40

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def clone(self, url: str, directory: Path) -> None:
        self._record("clone", url, str(directory))
        (Path(directory) / ".git").mkdir(parents=True, exist_ok=True)

    def fetch(self, directory: Path) -> None:
        self._record("fetch", str(directory))

    def pull(self, directory: Path) -> None:
        self._record("pull", str(directory))
        if self.commits:
            self._head = self.commits[0].commit

    def reset_hard(self, directory: Path) -> None:
        self._record("reset", str(directory))

    def clean(self, directory: Path) -> None:
        self._record("clean", str(directory))

    def checkout(self, directory: Path, branch: str) -> None:
        self._record("checkout", str(directory), branch)

    def head(self, directory: Path) -> str:
        self._record("head", str(directory))
        return self._head

    def log(self, directory: Path, since: str | None = None) -> list[CommitInfo]:
        self._record("log", str(directory), since or "")
        if since is None:
            return self.commits[:1]
        return list(self.commits)

    def _record(self, operation: str, *args: str) -> None:
        self.calls.append((operation, *args))
        if operation in self.fail_on:
            raise CommandFailed(["git", operation, *args], 128, f"simulated {operation} failure")


__all__ = ["CommitInfo", "FakeGitClient", "GitClient", "parse_log"]
