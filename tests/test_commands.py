import pytest

from climber.commands import list_custom_commands, run_custom_command
from climber.errors import ClimberError, OperationAborted
from climber.model import OperationSpec, Project
from climber.process import ProcessResult
from climber.registry import Workspace

from conftest import FakeRunner


@pytest.fixture
def ws(tmp_path):
    return Workspace(
        root=str(tmp_path),
        projects=[Project("db", "db"), Project("api", "api"), Project("web", "web")],
        groups={"backend": ["db", "api"]},
        custom_commands={
            "status": OperationSpec("status", "git status", target="backend"),
            "fmt": OperationSpec("fmt", "make fmt", parallel=True),
        },
    )


def test_unknown_command_raises(ws):
    with pytest.raises(ClimberError) as exc:
        run_custom_command(ws, "deploy")
    assert exc.value.kind == "unknown_command"
    assert "fmt" in exc.value.details["available"]


def test_default_target_comes_from_command(ws, fake_runner):
    agg = run_custom_command(ws, "status", runner=fake_runner)
    assert [r.project for r in agg.results] == ["db", "api"]


def test_explicit_target_overrides_default(ws, fake_runner):
    agg = run_custom_command(ws, "status", ["web", "backend"], runner=fake_runner)
    assert [r.project for r in agg.results] == ["web", "db", "api"]


def test_no_match_is_success(ws, fake_runner, capsys):
    agg = run_custom_command(ws, "status", "nobody", runner=fake_runner)
    assert agg.success and agg.results == []
    assert fake_runner.calls == []
    assert "No projects found for target: nobody" in capsys.readouterr().out


def test_fail_fast_is_default(ws):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=3 if cwd.name == "db" else 0))
    with pytest.raises(OperationAborted) as exc:
        run_custom_command(ws, "status", runner=runner)
    assert [r.project for r in exc.value.aggregate.results] == ["db"]


def test_command_parallel_setting_used(ws):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=3 if cwd.name == "db" else 0))
    # parallel commands never abort early
    agg = run_custom_command(ws, "fmt", runner=runner)
    assert len(agg.results) == 3
    assert agg.success is False


def test_list_custom_commands(ws, capsys):
    list_custom_commands(ws)
    out = capsys.readouterr().out
    assert "Default Target: backend" in out
    assert "backend: db, api" in out
