from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from conftest import create_dir, make_secondary, remove_dir
from fuzemill.errors import (
    AlreadyExistsError,
    FuzemillError,
    NotFoundError,
    StepError,
    SupervisorError,
    WrongLocationError,
)
from fuzemill.runner import FakeCommandRunner

TMUX_ENV = {"TMUX": "/tmp/tmux-0/default,1,0"}


def _forge_runner() -> FakeCommandRunner:
    runner = FakeCommandRunner()
    runner.add_response("gh", "issue", "create", stdout="https://github.com/acme/repo/issues/42\n")
    runner.add_response(
        "gh",
        "issue",
        "view",
        stdout=json.dumps({"number": 42, "title": "Fix login bug", "state": "OPEN", "labels": []}),
    )
    runner.add_response("git", "worktree", "add", effect=create_dir)
    runner.add_response("tmux", "has-session", returncode=1)
    return runner


def test_start_with_forge_fallback(build_coordinator, primary: Path) -> None:
    runner = _forge_runner()
    coordinator = build_coordinator(runner, primary)

    result = coordinator.start("Fix login bug")

    worktree = primary.parent / "repo-42"
    assert result.created_issue
    assert result.issue.id == "42"
    assert result.issue.backend == "forge-fallback"
    assert result.worktree.path == worktree
    assert result.worktree.branch == "42"
    assert worktree.is_dir()
    assert result.session.name == "fm-42"
    assert runner.calls_to("gh", "issue", "create") == [
        ("gh", "issue", "create", "--title", "Fix login bug", "--body", "Priority: 2")
    ]
    assert runner.calls_to("git", "worktree", "add") == [
        ("git", "worktree", "add", "-b", "42", str(worktree))
    ]
    new_session = runner.calls_to("tmux", "new-session")[0]
    assert new_session[:7] == ("tmux", "new-session", "-d", "-s", "fm-42", "-c", str(worktree))
    assert "42" in new_session[-1] and "Fix login bug" in new_session[-1]
    assert runner.detached == [
        (sys.executable, "-m", "fuzemill", "watch", "42", "--repo", str(primary))
    ]


def test_start_steps_run_in_order(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("bd", "create", stdout=json.dumps({"id": "fz-1"}))
    runner.add_response("git", "worktree", "add", effect=create_dir)
    runner.add_response("tmux", "has-session", returncode=1)

    build_coordinator(runner, primary).start("Add search", priority=1, agent="alt", model="o3")

    assert [cmd[:2] for cmd in runner.invocations] == [
        ("bd", "create"),
        ("git", "worktree"),
        ("bd", "update"),
        ("bd", "update"),
        ("tmux", "has-session"),
        ("tmux", "new-session"),
    ]
    assert runner.invocations[0] == ("bd", "create", "Add search", "--json", "--priority", "1")
    assert runner.invocations[2][-1] == "hooked"
    assert runner.invocations[3][-1] == "in_progress"
    assert runner.invocations[-1][-1].startswith("codex --model o3 ")


def test_start_backend_failure_provisions_nothing(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner()
    runner.add_response("gh", "issue", "create", returncode=1, stderr="HTTP 502")

    with pytest.raises(StepError) as excinfo:
        build_coordinator(runner, primary).start("Fix login bug")

    assert excinfo.value.step == "create issue"
    assert "HTTP 502" in str(excinfo.value)
    assert runner.calls_to("git") == []
    assert runner.calls_to("tmux") == []
    assert list(primary.parent.iterdir()) == [primary]


def test_start_with_unknown_id_fails_before_provisioning(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("bd", "show", returncode=1, stderr="issue not found")

    with pytest.raises(NotFoundError):
        build_coordinator(runner, primary).start(issue_id="fz-404")

    assert runner.calls_to("git") == []


def test_start_with_existing_id_uses_issue_title(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("bd", "show", stdout=json.dumps([{"id": "fz-5", "title": "Tidy logs", "status": "open"}]))
    runner.add_response("git", "worktree", "add", effect=create_dir)
    runner.add_response("tmux", "has-session", returncode=1)

    result = build_coordinator(runner, primary).start(issue_id="fz-5")

    assert not result.created_issue
    assert result.issue.title == "Tidy logs"
    assert runner.calls_to("bd", "create") == []
    assert "Tidy logs" in result.session.argv[-1]


def test_start_status_failure_is_not_fatal(build_coordinator, primary: Path, caplog) -> None:
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("bd", "create", stdout=json.dumps({"id": "fz-2"}))
    runner.add_response("bd", "update", returncode=1, stderr="invalid status")
    runner.add_response("git", "worktree", "add", effect=create_dir)
    runner.add_response("tmux", "has-session", returncode=1)
    caplog.set_level(logging.WARNING, logger="fuzemill.coordinator")

    result = build_coordinator(runner, primary).start("Flaky tracker")

    assert result.session.name == "fm-fz-2"
    assert any("Could not update issue status" in record.message for record in caplog.records)


def test_start_runs_direnv_allow_when_envrc_present(build_coordinator, primary: Path) -> None:
    def checkout(cmd: tuple[str, ...]) -> None:
        create_dir(cmd)
        (Path(cmd[-1]) / ".envrc").write_text("use flake\n", encoding="utf-8")

    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("bd", "create", stdout=json.dumps({"id": "fz-3"}))
    runner.add_response("git", "worktree", "add", effect=checkout)
    runner.add_response("tmux", "has-session", returncode=1)

    build_coordinator(runner, primary).start("Nix shell")

    assert runner.calls_to("direnv") == [("direnv", "allow")]


def test_start_refuses_existing_worktree(build_coordinator, primary: Path) -> None:
    (primary.parent / "repo-fz-5").mkdir()
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("bd", "show", stdout=json.dumps({"id": "fz-5", "title": "Busy"}))

    with pytest.raises(AlreadyExistsError):
        build_coordinator(runner, primary).start(issue_id="fz-5")

    assert runner.calls_to("tmux") == []


def test_start_rejects_unsafe_issue_id(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner(available=["bd"])

    with pytest.raises(FuzemillError, match="Invalid issue id"):
        build_coordinator(runner, primary).start(issue_id="../escape")

    assert runner.invocations == []


def test_unstart_without_worktree_is_noop(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner()
    runner.add_response("git", "rev-parse", returncode=1)
    coordinator = build_coordinator(runner, primary)

    first = coordinator.unstart("ISSUE-9")
    second = coordinator.unstart("ISSUE-9")

    assert not first.removed and not second.removed
    assert runner.calls_to("git", "worktree") == []
    assert runner.calls_to("git", "branch") == []


def test_unstart_from_inside_worktree_relocates(build_coordinator, workspace: Path, primary: Path) -> None:
    secondary = make_secondary(primary, workspace / "repo-ISSUE-9")
    nested = secondary / "src"
    nested.mkdir()
    runner = FakeCommandRunner()
    runner.add_response("git", "worktree", "remove", effect=remove_dir)
    chdirs: list[Path] = []

    result = build_coordinator(runner, nested, chdirs=chdirs).unstart("ISSUE-9")

    assert result.removed
    assert result.relocated_to == primary
    assert chdirs == [primary]
    assert not secondary.exists()
    assert runner.calls_to("git", "worktree", "remove") == [
        ("git", "worktree", "remove", "--force", str(secondary))
    ]
    assert runner.cwds[0] == primary


def test_merge_from_worktree_is_rejected(build_coordinator, workspace: Path, primary: Path) -> None:
    secondary = make_secondary(primary, workspace / "repo-ISSUE-9")
    runner = FakeCommandRunner()

    with pytest.raises(WrongLocationError):
        build_coordinator(runner, secondary).merge("ISSUE-9")

    assert runner.invocations == []
    assert secondary.exists()


def test_merge_runs_every_step(build_coordinator, primary: Path) -> None:
    (primary.parent / "repo-ISSUE-9").mkdir()
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("git", "worktree", "remove", effect=remove_dir)

    result = build_coordinator(runner, primary).merge("ISSUE-9")

    assert result.completed_steps == ["remove worktree", "merge PR", "pull", "close issue"]
    assert result.removed_worktree
    assert runner.calls_to("gh", "pr", "merge") == [
        ("gh", "pr", "merge", "ISSUE-9", "--merge", "--delete-branch")
    ]
    assert runner.calls_to("git", "pull") == [("git", "pull", "origin", "main")]
    assert runner.calls_to("bd", "close") == [("bd", "close", "ISSUE-9")]


def test_merge_failure_is_forward_only_and_resumable(build_coordinator, primary: Path) -> None:
    worktree = primary.parent / "repo-ISSUE-9"
    worktree.mkdir()
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response("git", "worktree", "remove", effect=remove_dir)
    runner.add_response("gh", "pr", "merge", returncode=1, stderr="Pull request is not mergeable")
    runner.add_response("gh", "pr", "merge", returncode=0)
    runner.add_response("git", "rev-parse", returncode=0)
    runner.add_response("git", "rev-parse", returncode=1)
    coordinator = build_coordinator(runner, primary)

    with pytest.raises(StepError) as excinfo:
        coordinator.merge("ISSUE-9")

    assert excinfo.value.step == "merge PR"
    assert str(excinfo.value).startswith("merge PR: ")
    assert not worktree.exists()
    assert runner.calls_to("bd", "close") == []
    assert runner.calls_to("git", "pull") == []

    result = coordinator.merge("ISSUE-9")

    assert not result.removed_worktree
    assert result.completed_steps[-1] == "close issue"
    assert len(runner.calls_to("git", "worktree", "remove")) == 1
    assert runner.calls_to("bd", "close") == [("bd", "close", "ISSUE-9")]


def test_done_kills_current_session(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner()
    runner.add_response("tmux", "display-message", stdout="fm-42\n")

    name = build_coordinator(runner, primary, environ=TMUX_ENV).done()

    assert name == "fm-42"
    assert runner.calls_to("tmux", "kill-session") == [("tmux", "kill-session", "-t", "=fm-42")]


@pytest.mark.parametrize("environ, session", [({}, ""), (TMUX_ENV, "scratch\n")])
def test_done_outside_fuzemill_session(build_coordinator, primary: Path, environ, session) -> None:
    runner = FakeCommandRunner()
    runner.add_response("tmux", "display-message", stdout=session)

    with pytest.raises(SupervisorError):
        build_coordinator(runner, primary, environ=environ).done()

    assert runner.calls_to("tmux", "kill-session") == []


def test_done_and_natural_exit_tear_down_once(build_coordinator, primary: Path) -> None:
    worktree = primary.parent / "repo-42"
    worktree.mkdir()
    runner = FakeCommandRunner()
    runner.add_response("tmux", "display-message", stdout="fm-42\n")
    runner.add_response("tmux", "has-session", returncode=0)
    runner.add_response("tmux", "has-session", returncode=1)
    runner.add_response("git", "worktree", "remove", effect=remove_dir)
    runner.add_response("git", "rev-parse", returncode=0)
    runner.add_response("git", "rev-parse", returncode=1)
    coordinator = build_coordinator(runner, primary, environ=TMUX_ENV)

    coordinator.done()
    first = coordinator.watch("42", primary)
    second = coordinator.watch("42", primary)

    assert first is True
    assert second is False
    assert not worktree.exists()
    assert len(runner.calls_to("git", "worktree", "remove")) == 1


def test_scan_reports_repository(build_coordinator, workspace: Path, primary: Path) -> None:
    secondary = make_secondary(primary, workspace / "repo-42")
    coordinator = build_coordinator(FakeCommandRunner(), secondary)

    info = coordinator.scan()

    assert info.name == "repo-42"
    assert info.primary_root == primary


def test_start_with_dotted_id_uses_tmux_session_name(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner(available=["bd"])
    runner.add_response(
        "bd", "show", stdout=json.dumps([{"id": "bd-a1.1", "title": "Child task", "priority": 1}])
    )
    runner.add_response("git", "worktree", "add", effect=create_dir)
    runner.add_response("tmux", "has-session", returncode=1)

    result = build_coordinator(runner, primary).start(issue_id="bd-a1.1")

    assert result.session.name == "fm-bd-a1_1"
    assert result.session.issue_id == "bd-a1.1"
    assert result.worktree.branch == "bd-a1.1"
    assert runner.calls_to("tmux", "new-session")[0][4] == "fm-bd-a1_1"
    assert runner.detached[0][4] == "bd-a1.1"


def test_watch_for_dotted_id_waits_on_tmux_session_name(build_coordinator, primary: Path) -> None:
    worktree = primary.parent / "repo-bd-a1.1"
    worktree.mkdir()
    runner = FakeCommandRunner()
    runner.add_response("tmux", "has-session", returncode=0)
    runner.add_response("tmux", "has-session", returncode=1)
    runner.add_response("git", "worktree", "remove", effect=remove_dir)

    assert build_coordinator(runner, primary).watch("bd-a1.1", primary) is True

    assert runner.calls_to("tmux", "has-session") == [
        ("tmux", "has-session", "-t", "=fm-bd-a1_1"),
        ("tmux", "has-session", "-t", "=fm-bd-a1_1"),
    ]
    assert not worktree.exists()


def test_done_kills_dotted_issue_session(build_coordinator, primary: Path) -> None:
    runner = FakeCommandRunner()
    runner.add_response("tmux", "display-message", stdout="fm-bd-a1_1\n")

    assert build_coordinator(runner, primary, environ=TMUX_ENV).done() == "fm-bd-a1_1"
    assert runner.calls_to("tmux", "kill-session") == [("tmux", "kill-session", "-t", "=fm-bd-a1_1")]


def test_start_reports_watcher_failure_as_step(
    build_coordinator, primary: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = _forge_runner()

    def refuse(*_args, **_kwargs):
        raise OSError(11, "Resource temporarily unavailable")

    monkeypatch.setattr(runner, "spawn_detached", refuse)

    with pytest.raises(StepError) as excinfo:
        build_coordinator(runner, primary).start("Fix login bug")

    assert excinfo.value.step == "register teardown"
    assert len(runner.calls_to("tmux", "new-session")) == 1
