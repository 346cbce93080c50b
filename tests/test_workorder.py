from pathlib import Path

import pytest

from build_worker.errors import PipelineError
from build_worker.errors import Stage
from build_worker.git import CommitInfo
from build_worker.workorder import FailureSummary
from build_worker.workorder import ReleaseSummary
from build_worker.workorder import summarize


def _finish(order, error=None, commits=()):
    order.start()
    order.commit_info = list(commits)
    order.complete(error)
    return order


@pytest.mark.parametrize("package", ["", "/abs/pkg", "../escape", "a/../../b"])
def test_package_must_stay_inside_base_dir(make_order, package):
    with pytest.raises(ValueError):
        make_order(package=package)


def test_source_subdir_must_be_relative(make_order):
    with pytest.raises(ValueError):
        make_order(source_subdir="/tmp/src")


def test_paths_derive_from_base_dir(make_order, tmp_path: Path):
    order = make_order(package="team/api", source_subdir="code")

    assert order.workspace_dir == tmp_path / "base" / "team" / "api"
    assert order.source_dir == tmp_path / "base" / "team" / "api" / "code"


def test_home_is_expanded_in_base_dir(make_order, monkeypatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path))
    order = make_order(base_dir=Path("~/builds"))
    assert order.base_dir == tmp_path / "builds"


def test_complete_freezes_collections(make_order):
    order = _finish(make_order(), commits=[CommitInfo("m", "c", "a", "d")])

    assert order.finished
    assert isinstance(order.commit_info, tuple)
    assert isinstance(order.test_results, tuple)
    with pytest.raises(AttributeError):
        order.error = None


def test_summarize_success_collects_unique_stories(make_order):
    commit = CommitInfo("Add search", "e" * 40, "dev", "today")
    orders = [
        _finish(make_order(package="svc/a", stories=["S-1", "S-2"]), commits=[commit]),
        _finish(make_order(package="svc/b", stories=["S-2", "S-3"])),
    ]

    summary = summarize("prod", orders)

    assert isinstance(summary, ReleaseSummary)
    assert summary.stories == ["S-1", "S-2", "S-3"]
    assert [c.service for c in summary.commits] == ["svc/a", "svc/b"]
    assert summary.commits[0].commit_info == [commit]
    assert summary.commits[1].commit_info == []


def test_summarize_explicit_stories_win(make_order):
    summary = summarize("prod", [_finish(make_order(stories=["S-9"]))], stories=["OVERRIDE"])
    assert summary.stories == ["OVERRIDE"]


def test_summarize_failure_lists_every_service(make_order):
    error = PipelineError(Stage.TEST, "svc/b", "/w/svc/b/src/pkg", "test")
    orders = [
        _finish(make_order(package="svc/a")),
        _finish(make_order(package="svc/b"), error=error),
    ]

    summary = summarize("qa", orders)

    assert isinstance(summary, FailureSummary)
    assert [(e.service, e.error) for e in summary.errors] == [
        ("svc/a", None),
        ("svc/b", str(error)),
    ]


def test_respond_wraps_sink_errors(make_order):
    class Closed:
        def write(self, data):
            raise ValueError("unexpected")

    class Broken:
        def write(self, data):
            raise OSError("gone")

    with pytest.raises(ValueError):
        make_order(output=Closed()).respond(Stage.SYNC, Path("/x"), "hi")

    with pytest.raises(PipelineError) as excinfo:
        make_order(output=Broken()).respond(Stage.SYNC, Path("/x"), "hi")
    assert excinfo.value.stage is Stage.REPORT
    assert excinfo.value.path == Path("/x")
