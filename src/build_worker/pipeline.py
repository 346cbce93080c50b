"""Drive a work order through prepare, synchronize and test."""
from __future__ import annotations

import logging
from typing import Iterable

from . import metrics
from .commands import CommandExecutor
from .config import WorkerConfig
from .errors import PipelineError
from .git import GitClient
from .notify import BuildReporter
from .sync import SourceSynchronizer
from .testcmd import TestCommand
from .unittests import UnitTestRunner
from .workorder import FailureSummary
from .workorder import ReleaseSummary
from .workorder import WorkOrder
from .workorder import summarize
from .workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class BuildPipeline:
    def __init__(
        self,
        synchronizer: SourceSynchronizer,
        test_runner: UnitTestRunner,
        reporter: BuildReporter | None = None,
    ) -> None:
        self.synchronizer = synchronizer
        self.test_runner = test_runner
        self.reporter = reporter

    @classmethod
    def from_config(cls, config: WorkerConfig, reporter: BuildReporter | None = None) -> "BuildPipeline":
        executor = CommandExecutor()
        git = GitClient(executor, git_bin=config.git_bin)
        command = TestCommand(
            executor,
            command=config.test.command,
            path_variable=config.test.path_variable,
        )
        return cls(
            synchronizer=SourceSynchronizer(git, WorkspaceManager()),
            test_runner=UnitTestRunner(command, patterns=config.test.patterns),
            reporter=reporter,
        )

    def process(self, order: WorkOrder) -> WorkOrder:
        """Run every stage; the first ``PipelineError`` ends the order as failed."""

        order.start()
        logger.info("Starting work order %s on %s (build %s)", order.package, order.branch, order.build_number or "-")
        try:
            self.synchronizer.get_source(order)
            self.test_runner.run_unit_tests(order)
        except PipelineError as exc:
            order.complete(exc)
            metrics.record_stage_failure(exc.stage.value)
            logger.error("Work order %s failed: %s", order.package, exc)
        else:
            order.complete()
            logger.info("Work order %s succeeded", order.package)

        duration = order.execution_duration.total_seconds() if order.execution_duration else None
        metrics.record_work_order("failed" if order.failed else "succeeded", duration)
        return order

    def notify(
        self,
        environment: str,
        orders: Iterable[WorkOrder],
        stories: Iterable[str] | None = None,
    ) -> ReleaseSummary | FailureSummary:
        summary = summarize(environment, orders, stories)
        if self.reporter is not None:
            self.reporter.send(summary)
        return summary


__all__ = ["BuildPipeline"]
