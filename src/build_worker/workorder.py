"""Work order state and the summary records handed to notifications."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path
from pathlib import PurePosixPath
from typing import Any
from typing import Iterable
from typing import Sequence

from .errors import PipelineError
from .errors import Stage
from .git import CommitInfo
from .output import OutputSink
from .output import report

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_relative(label: str, value: str) -> None:
    path = PurePosixPath(value)
    if not path.parts or path.is_absolute() or ".." in path.parts:
        raise ValueError(f"{label} must be a relative path inside the base directory: {value!r}")


@dataclass(frozen=True)
class PackageTestResult:
    package: str
    output: bytes
    passed: bool


@dataclass(eq=False)
class WorkOrder:
    """One build/test request. Frozen once :meth:`complete` has run."""

    repo: str
    package: str
    branch: str
    environment: str
    base_dir: Path
    output: OutputSink
    build_number: str = ""
    source_subdir: str = "src"
    stories: list[str] = field(default_factory=list)
    submit_time: datetime = field(default_factory=_now)
    execute_start_time: datetime | None = None
    wait_duration: timedelta | None = None
    execution_duration: timedelta | None = None
    failed: bool = False
    error: PipelineError | None = None
    commit_info: Sequence[CommitInfo] = field(default_factory=list)
    test_results: Sequence[PackageTestResult] = field(default_factory=list)
    finished: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        _check_relative("package", self.package)
        _check_relative("source_subdir", self.source_subdir)
        self.base_dir = Path(self.base_dir).expanduser()

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("finished"):
            raise AttributeError(f"work order for {self.package} is finished; {name} is read-only")
        super().__setattr__(name, value)

    @property
    def workspace_dir(self) -> Path:
        return self.base_dir / self.package

    @property
    def source_dir(self) -> Path:
        return self.workspace_dir / self.source_subdir

    # Lifecycle ---------------------------------------------------------
    def start(self) -> None:
        self.execute_start_time = _now()
        self.wait_duration = self.execute_start_time - self.submit_time

    def complete(self, error: PipelineError | None = None) -> None:
        if self.execute_start_time is not None:
            self.execution_duration = _now() - self.execute_start_time
        self.failed = error is not None
        self.error = error
        self.commit_info = tuple(self.commit_info)
        self.test_results = tuple(self.test_results)
        self.finished = True

    # Progress ----------------------------------------------------------
    def respond(self, stage: Stage, path: Path, message: str | bytes) -> None:
        """Report progress; a sink failure becomes a fatal reporting error."""

        try:
            report(self.output, message)
        except OSError as exc:
            logger.error("[%s] Unable to report %s progress: %s", self.package, stage.value, exc)
            raise PipelineError(Stage.REPORT, self.package, path, "report", exc) from exc


@dataclass(frozen=True)
class ServiceCommits:
    service: str
    environment: str
    commit_info: list[CommitInfo]


@dataclass(frozen=True)
class ServiceError:
    service: str
    environment: str
    error: str | None


@dataclass(frozen=True)
class ReleaseSummary:
    environment: str
    stories: list[str]
    commits: list[ServiceCommits]


@dataclass(frozen=True)
class FailureSummary:
    environment: str
    errors: list[ServiceError]


def summarize(
    environment: str,
    orders: Iterable[WorkOrder],
    stories: Iterable[str] | None = None,
) -> ReleaseSummary | FailureSummary:
    """Collapse finished work orders into the record the notifier expects.

    Any failed order turns the whole batch into a failure summary listing
    every service, with ``error=None`` for the ones that passed.
    """

    orders = list(orders)
    if any(order.failed for order in orders):
        return FailureSummary(
            environment=environment,
            errors=[
                ServiceError(
                    service=order.package,
                    environment=order.environment,
                    error=str(order.error) if order.error is not None else None,
                )
                for order in orders
            ],
        )

    if stories is None:
        collected: list[str] = []
        for order in orders:
            for story in order.stories:
                if story not in collected:
                    collected.append(story)
        stories = collected
    return ReleaseSummary(
        environment=environment,
        stories=list(stories),
        commits=[
            ServiceCommits(
                service=order.package,
                environment=order.environment,
                commit_info=list(order.commit_info),
            )
            for order in orders
        ],
    )


__all__ = [
    "FailureSummary",
    "PackageTestResult",
    "ReleaseSummary",
    "ServiceCommits",
    "ServiceError",
    "WorkOrder",
    "summarize",
]
