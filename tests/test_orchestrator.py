import pytest

from climber.compose import clean_args, logs_args, ps_args, stop_args, up_args
from climber.dsl import build, port, project
from climber.errors import OperationAborted
from climber.orchestrator import Orchestrator
from climber.process import ProcessResult

from conftest import FakeRunner


class StubChecker:
    def __init__(self, ready=True):
        self.ready = ready
        self.waits = []

    def wait_for(self, deps, context_path, policy):
        self.waits.append(([d.name for d in deps], policy))
        return self.ready


@pytest.fixture
def ws(tmp_path):
    return (
        build(str(tmp_path))
        .add(
            project("web"),
            project("api", description="REST api"),
            project("db", readiness=port(5432)),
        )
        .depends_on("web", "api")
        .depends_on("api", "db")
        .group("backend", "api", "db")
        .environment("dev", "db", "api")
        .build()
    )


def orchestrator(ws, runner, checker=None, sleeps=None):
    return Orchestrator(
        ws,
        runner=runner,
        checker=checker or StubChecker(),
        stabilize_delay=0.25,
        sleep=(sleeps.append if sleeps is not None else lambda s: None),
    )


def dirs(runner):
    return [c["cwd"].name for c in runner.calls]


def test_compose_args():
    assert up_args() == ["docker", "compose", "up", "-d", "--build", "--remove-orphans"]
    assert up_args("db")[-1] == "db"
    assert stop_args() == ["docker", "compose", "stop"]
    assert ps_args() == ["docker", "compose", "ps"]
    assert logs_args() == ["docker", "compose", "logs", "--tail", "100"]
    assert logs_args(20, "api", follow=True) == ["docker", "compose", "logs", "--tail", "20", "api", "--follow"]
    assert clean_args() == ["docker", "compose", "down"]
    assert clean_args(volumes=True, remove_orphans=True)[3:] == ["--volumes", "--remove-orphans"]


def test_up_starts_in_dependency_order(ws, fake_runner):
    sleeps = []
    checker = StubChecker()
    agg = orchestrator(ws, fake_runner, checker, sleeps).up()

    assert agg.success
    assert [r.project for r in agg.results] == ["db", "api", "web"]
    assert dirs(fake_runner) == ["db", "api", "web"]
    assert fake_runner.argv[0] == up_args()
    # no blind pause before api, which waits on db's readiness check
    assert sleeps == [0.25]
    # only api has a dependency with a readiness check
    assert [w[0] for w in checker.waits] == [["db"]]
    assert checker.waits[0][1] is ws.readiness


def test_down_is_reverse_of_up(ws, fake_runner):
    agg = orchestrator(ws, fake_runner).down()
    assert [r.project for r in agg.results] == ["web", "api", "db"]
    assert fake_runner.argv[0] == stop_args()


def test_up_stops_at_first_failure(ws):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=1 if cwd.name == "api" else 0))
    with pytest.raises(OperationAborted) as exc:
        orchestrator(ws, runner).up()

    assert [r.project for r in exc.value.aggregate.results] == ["db", "api"]
    assert dirs(runner) == ["db", "api"]


def test_dependencies_not_ready_fails_project(ws, fake_runner):
    with pytest.raises(OperationAborted) as exc:
        orchestrator(ws, fake_runner, StubChecker(ready=False)).up()

    failed = exc.value.aggregate.failed
    assert [r.project for r in failed] == ["api"]
    assert "Dependencies of api not ready: db" in failed[0].error
    # api never ran its compose command
    assert dirs(fake_runner) == ["db"]


def test_environment_and_target_filtering(ws, fake_runner):
    o = orchestrator(ws, fake_runner)

    assert [p.name for p in o.plan("dev")] == ["db", "api"]
    assert [p.name for p in o.plan(target="backend")] == ["db", "api"]
    assert [p.name for p in o.plan(target=["web", "db"])] == ["db", "web"]
    # repeated names in a target collapse into startup order
    assert [p.name for p in o.plan(target=["db", "db"])] == ["db"]


def test_nothing_selected(ws, fake_runner, capsys):
    agg = orchestrator(ws, fake_runner).up(target="nobody")
    assert agg.success and agg.results == []
    assert fake_runner.calls == []
    assert "No projects selected." in capsys.readouterr().out


def test_restart_runs_down_then_up(ws, fake_runner):
    stopped, started = orchestrator(ws, fake_runner).restart(target="backend")
    assert [r.project for r in stopped.results] == ["api", "db"]
    assert [r.project for r in started.results] == ["db", "api"]
    assert [a[2] for a in fake_runner.argv] == ["stop", "stop", "up", "up"]


def test_ps_continues_past_failures(ws, capsys):
    runner = FakeRunner(
        lambda args, cwd: ProcessResult(returncode=1) if cwd.name == "db" else ProcessResult(0, stdout=f"{cwd.name} up")
    )
    agg = orchestrator(ws, runner).ps()

    assert [r.project for r in agg.results] == ["db", "api", "web"]
    assert agg.success is False
    assert runner.argv[0] == ps_args()
    out = capsys.readouterr().out
    assert "REST api" in out
    assert "web up" in out


def test_stabilize_delay_without_readiness_checks(tmp_path, fake_runner):
    plain = (
        build(str(tmp_path))
        .add(project("a"), project("b"), project("c"))
        .depends_on("b", "a")
        .depends_on("c", "b")
        .build()
    )
    sleeps = []
    orchestrator(plain, fake_runner, sleeps=sleeps).up()
    assert sleeps == [0.25, 0.25]


def test_service_is_passed_to_compose(ws, fake_runner):
    o = orchestrator(ws, fake_runner)
    o.up(target="db", service="postgres")
    o.down(target="db", service="postgres")
    o.restart(target="db", service="postgres")

    assert fake_runner.argv == [
        up_args("postgres"),
        stop_args("postgres"),
        stop_args("postgres"),
        up_args("postgres"),
    ]


def test_logs_in_startup_order(ws, capsys):
    runner = FakeRunner(lambda args, cwd: ProcessResult(0, stdout=f"{cwd.name} log line"))
    agg = orchestrator(ws, runner).logs(tail=50, service="app")

    assert agg.success
    assert dirs(runner) == ["db", "api", "web"]
    assert runner.argv[0] == ["docker", "compose", "logs", "--tail", "50", "app"]
    out = capsys.readouterr().out
    assert "REST api" in out
    assert "api log line" in out


def test_logs_stops_at_first_failure(ws):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=1 if cwd.name == "api" else 0))
    with pytest.raises(OperationAborted):
        orchestrator(ws, runner).logs()
    assert dirs(runner) == ["db", "api"]


def test_follow_logs_prefix_each_line(ws, capsys):
    runner = FakeRunner(lambda args, cwd: ProcessResult(0, stdout=f"started\n\n{cwd.name} ready\n"))
    agg = orchestrator(ws, runner).logs(target="backend", follow=True)

    assert agg.success
    assert sorted(dirs(runner)) == ["api", "db"]
    assert all(a[-1] == "--follow" for a in runner.argv)
    out = capsys.readouterr().out.splitlines()
    assert "[db] started" in out
    assert "[db] db ready" in out
    assert "[api] api ready" in out
    assert "[api] " not in out


def test_follow_logs_report_failed_stream(ws):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=1 if cwd.name == "db" else 0))
    agg = orchestrator(ws, runner).logs(follow=True)

    assert agg.success is False
    assert [r.project for r in agg.failed] == ["db"]
    assert len(agg.results) == 3


def test_clean_continues_past_failures(ws):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=1 if cwd.name == "db" else 0))
    agg = orchestrator(ws, runner).clean(volumes=True, remove_orphans=True)

    assert dirs(runner) == ["db", "api", "web"]
    assert agg.success is False
    assert [r.project for r in agg.succeeded] == ["api", "web"]
    assert runner.argv[0] == ["docker", "compose", "down", "--volumes", "--remove-orphans"]
