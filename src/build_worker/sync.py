"""Bring a work order's source directory in line with the remote branch."""
from __future__ import annotations

import logging
import shutil
from typing import Any
from typing import Callable

from .commands import CommandFailed
from .errors import PipelineError
from .errors import Stage
from .git import GitClient
from .workorder import WorkOrder
from .workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class SourceSynchronizer:
    """Clone/fetch/reset/clean/checkout/pull, stopping at the first failure.

    Running it again on an already synchronized workspace is a no-op apart
    from the progress output.
    """

    def __init__(self, git: GitClient, workspace: WorkspaceManager | None = None) -> None:
        self.git = git
        self.workspace = workspace or WorkspaceManager()

    def get_source(self, order: WorkOrder) -> None:
        self.workspace.prepare_workspace(order)

        src = order.source_dir
        pkg = order.package
        fresh_clone = False
        if not self._check(order, lambda: self.git.is_repo(src)):
            if self._check(order, src.exists):
                order.respond(Stage.SYNC, src, f"[{pkg}] Removing git repository directory [{src}].")
                try:
                    shutil.rmtree(src)
                except OSError as exc:
                    logger.error("[%s] Error removing git repository directory [%s]: %s", pkg, src, exc)
                    raise PipelineError(Stage.SYNC, pkg, src, "remove", exc) from exc
            self._step(
                order,
                "clone",
                f"[{pkg}] Cloning git repository [{order.repo}] into directory [{src}].",
                lambda: self.git.clone(order.repo, src),
            )
            fresh_clone = True

        self._step(
            order,
            "fetch",
            f"[{pkg}] Fetching source code in directory [{src}].",
            lambda: self.git.fetch(src),
        )
        self._step(
            order,
            "reset",
            f"[{pkg}] Hard resetting git repository in directory [{src}].",
            lambda: self.git.reset_hard(src),
        )
        self._step(
            order,
            "clean",
            f"[{pkg}] Cleaning repository in directory [{src}].",
            lambda: self.git.clean(src),
        )
        self._step(
            order,
            "checkout",
            f"[{pkg}] Checking out branch [{order.branch}] in directory [{src}].",
            lambda: self.git.checkout(src, order.branch),
        )

        previous_head = None if fresh_clone else self._read(order, "head", lambda: self.git.head(src))
        self._step(
            order,
            "pull",
            f"[{pkg}] Pulling new changes into branch [{order.branch}] in directory [{src}].",
            lambda: self.git.pull(src),
        )
        order.commit_info = self._read(order, "log", lambda: self.git.log(src, previous_head))

    def _check(self, order: WorkOrder, inspect: Callable[[], bool]) -> bool:
        try:
            return inspect()
        except OSError as exc:
            logger.error("[%s] Error inspecting [%s]: %s", order.package, order.source_dir, exc)
            raise PipelineError(Stage.SYNC, order.package, order.source_dir, "stat", exc) from exc

    def _step(self, order: WorkOrder, operation: str, message: str, action: Callable[[], object]) -> None:
        order.respond(Stage.SYNC, order.source_dir, message)
        self._read(order, operation, action)

    def _read(self, order: WorkOrder, operation: str, action: Callable[[], Any]) -> Any:
        try:
            return action()
        except CommandFailed as exc:
            logger.error("[%s] git %s failed in [%s]: %s", order.package, operation, order.source_dir, exc)
            raise PipelineError(Stage.SYNC, order.package, order.source_dir, operation, exc) from exc


__all__ = ["SourceSynchronizer"]
