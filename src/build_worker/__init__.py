"""Workspace preparation, source synchronization and unit test runs for build work orders."""

from .errors import PipelineError, Stage
from .output import MemorySink, OutputSink, report
from .pipeline import BuildPipeline
from .workorder import WorkOrder, summarize

__all__ = [
    "BuildPipeline",
    "MemorySink",
    "OutputSink",
    "PipelineError",
    "Stage",
    "WorkOrder",
    "report",
    "summarize",
]
