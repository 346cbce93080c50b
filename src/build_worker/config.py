"""Configuration loading for build-worker."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from .testcmd import DEFAULT_PATH_VARIABLE
from .testcmd import DEFAULT_TEST_COMMAND
from .unittests import DEFAULT_TEST_PATTERNS


class TestConfig(BaseModel):
    """How test packages are found and run."""

    __test__ = False

    command: list[str] = Field(default_factory=lambda: list(DEFAULT_TEST_COMMAND))
    patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_TEST_PATTERNS))
    path_variable: str = DEFAULT_PATH_VARIABLE

    @field_validator("command", "patterns")
    @classmethod
    def _not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("must contain at least one entry")
        return value


class EmailConfig(BaseModel):
    """SMTP delivery options for release and failure notifications."""

    host: str = "localhost"
    port: int = 25
    sender: str = "services@localhost"
    recipients: list[str] = Field(default_factory=list, alias="to")
    cc: list[str] = Field(default_factory=list)
    failure_recipients: list[str] = Field(default_factory=list, alias="failure_to")
    failure_cc: list[str] = Field(default_factory=list)
    username: str | None = None
    password: str | None = None
    starttls: bool = False
    timeout: float = 30.0

    model_config = {"populate_by_name": True}


class WorkerConfig(BaseModel):
    """Top-level worker configuration."""

    base_dir: Path = Path("~/.build_worker/workspaces")
    source_subdir: str = "src"
    git_bin: str = "git"
    test: TestConfig = Field(default_factory=TestConfig)
    notify_channel: str = Field(default="stdout", alias="notify")
    webhook_url: str | None = None
    email: EmailConfig = Field(default_factory=EmailConfig)
    metrics_port: int | None = None
    metrics_host: str = "0.0.0.0"

    model_config = {"populate_by_name": True}

    def expanded_base_dir(self) -> Path:
        return self.base_dir.expanduser()


def load_yaml(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def load_worker_config(path: Path | None = None) -> WorkerConfig:
    if path is None or not path.expanduser().exists():
        return WorkerConfig()
    raw = load_yaml(path.expanduser())
    try:
        return WorkerConfig.model_validate(raw or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid worker config at {path}: {exc}") from exc


__all__ = ["EmailConfig", "TestConfig", "WorkerConfig", "load_worker_config", "load_yaml"]
