"""Structured errors raised by the build pipeline."""
from __future__ import annotations

from enum import Enum
from pathlib import Path


class Stage(str, Enum):
    SETUP = "setup"
    SYNC = "sync"
    TEST = "test"
    REPORT = "report"


class PipelineError(Exception):
    """A failure inside one work order, annotated with where it happened.

    ``stage`` lets callers branch on the kind of failure without matching on
    the message text; ``cause`` is the underlying exception, if any.
    """

    def __init__(
        self,
        stage: Stage,
        package: str,
        path: Path | str,
        operation: str,
        cause: BaseException | None = None,
    ) -> None:
        self.stage = stage
        self.package = package
        self.path = Path(path)
        self.operation = operation
        self.cause = cause
        super().__init__(self._format())

    def _format(self) -> str:
        text = f"[{self.package}] {self.stage.value}: {self.operation} failed in [{self.path}]"
        if self.cause is not None:
            text += f":\n{self.cause}"
        return text


__all__ = ["PipelineError", "Stage"]
