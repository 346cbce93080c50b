from pathlib import Path

import pytest

from build_worker.config import WorkerConfig
from build_worker.config import load_worker_config

CONFIG_YAML = """
base_dir: ~/ci/workspaces
source_subdir: code
git_bin: /usr/local/bin/git
notify: email,webhook
webhook_url: https://hooks.example.com/build
test:
  command: ["python", "-m", "pytest", "-q"]
  patterns: ["test_*.py"]
email:
  host: smtp.example.com
  port: 587
  sender: ci@example.com
  to: [team@example.com]
  failure_to: [oncall@example.com]
  starttls: true
metrics_port: 9105
"""


def test_load_worker_config_reads_aliases(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    path = tmp_path / "worker.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")

    config = load_worker_config(path)

    assert config.expanded_base_dir() == tmp_path / "ci" / "workspaces"
    assert config.source_subdir == "code"
    assert config.git_bin == "/usr/local/bin/git"
    assert config.notify_channel == "email,webhook"
    assert config.test.command == ["python", "-m", "pytest", "-q"]
    assert config.test.path_variable == "PYTHONPATH"
    assert config.email.recipients == ["team@example.com"]
    assert config.email.failure_recipients == ["oncall@example.com"]
    assert config.email.starttls is True
    assert config.metrics_port == 9105


def test_missing_or_unset_config_uses_defaults(tmp_path: Path):
    assert load_worker_config(None) == WorkerConfig()
    config = load_worker_config(tmp_path / "absent.yaml")
    assert config.notify_channel == "stdout"
    assert config.test.patterns == ["test_*.py", "*_test.py"]


def test_empty_file_uses_defaults(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_worker_config(path) == WorkerConfig()


@pytest.mark.parametrize(
    "body",
    [
        "test:\n  command: []\n",
        "email:\n  port: not-a-port\n",
        "metrics_port: [1]\n",
    ],
)
def test_invalid_config_raises_value_error(tmp_path: Path, body: str):
    path = tmp_path / "bad.yaml"
    path.write_text(body, encoding="utf-8")

    with pytest.raises(ValueError) as excinfo:
        load_worker_config(path)

    assert "Invalid worker config" in str(excinfo.value)
