import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from climber import readiness
from climber.dsl import build, check, project
from climber.model import ReadinessPolicy, ReadinessSpec
from climber.process import ProcessResult
from climber.readiness import Dependency, ReadinessChecker, check_port, parse_compose_ps

from conftest import FakeRunner


def closed_port() -> int:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def listening_port():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    s.listen(1)
    yield s.getsockname()[1]
    s.close()


@pytest.fixture
def http_server():
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            self.send_response(200 if self.path == "/health" else 503)
            self.end_headers()
            self.wfile.write(b"{}")

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


# ----------------------------------------------------------------------
# probes
# ----------------------------------------------------------------------

def test_port_probe(listening_port):
    assert check_port("127.0.0.1", listening_port, 1000) is True
    assert check_port("127.0.0.1", closed_port(), 1000) is False


def test_http_probe_requires_2xx(http_server):
    checker = ReadinessChecker()
    assert checker.check_one(ReadinessSpec("http", {"url": f"{http_server}/health"}, 2000), ".")
    assert not checker.check_one(ReadinessSpec("http", {"url": f"{http_server}/down"}, 2000), ".")
    assert not checker.check_one(ReadinessSpec("http", {"url": "not a url"}, 2000), ".")


def test_command_probe_uses_exit_code_and_context_path(tmp_path):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=0 if args[0] == "true" else 1))
    checker = ReadinessChecker(runner=runner)

    assert checker.check_one(ReadinessSpec("command", {"command": "true"}, 1500), tmp_path)
    assert not checker.check_one(ReadinessSpec("command", {"command": "false now"}, 1500), tmp_path)

    assert runner.calls[0]["cwd"] == tmp_path
    assert runner.calls[0]["timeout"] == 1.5
    assert runner.argv[1] == ["false", "now"]


def test_command_probe_timeout_is_failure(tmp_path):
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=-15, timed_out=True))
    assert not ReadinessChecker(runner=runner).check_one(ReadinessSpec("command", {"command": "sleep 10"}), tmp_path)


def test_command_probe_spawn_error_is_failure(tmp_path):
    def boom(args, cwd):
        raise FileNotFoundError("no such file")

    assert not ReadinessChecker(runner=FakeRunner(boom)).check_one(
        ReadinessSpec("command", {"command": "missing-binary"}), tmp_path
    )


def test_real_command_probe_is_terminated_on_timeout(tmp_path):
    start = time.monotonic()
    ok = ReadinessChecker().check_one(ReadinessSpec("command", {"command": "sleep 5"}, 200), tmp_path)
    assert ok is False
    assert time.monotonic() - start < 4


@pytest.mark.parametrize(
    "records, expected",
    [
        ([{"Service": "db", "State": "running"}], True),
        ([{"Service": "db", "State": "running", "Health": "healthy"}], True),
        ([{"Service": "db", "State": "running", "Health": "starting"}], False),
        ([{"Service": "db", "State": "exited"}], False),
        ([{"Service": "other", "State": "running"}], False),
    ],
)
def test_docker_probe(records, expected, tmp_path):
    stdout = "\n".join(json.dumps(r) for r in records)
    runner = FakeRunner(lambda args, cwd: ProcessResult(returncode=0, stdout=stdout))
    checker = ReadinessChecker(runner=runner)

    assert checker.check_one(ReadinessSpec("docker", {"service": "db"}), tmp_path) is expected
    assert runner.argv[0] == ["docker", "compose", "ps", "--format", "json", "db"]


def test_docker_probe_bad_output_or_exit_is_failure(tmp_path):
    garbage = FakeRunner(lambda args, cwd: ProcessResult(returncode=0, stdout="not json"))
    failed = FakeRunner(lambda args, cwd: ProcessResult(returncode=1, stdout=""))
    spec = ReadinessSpec("docker", {"service": "db"})

    assert ReadinessChecker(runner=garbage).check_one(spec, tmp_path) is False
    assert ReadinessChecker(runner=failed).check_one(spec, tmp_path) is False


def test_parse_compose_ps_accepts_array_output():
    assert parse_compose_ps('[{"Service": "db"}]') == [{"Service": "db"}]


def test_unknown_type_fails_open(capsys):
    assert ReadinessChecker().check_one(ReadinessSpec("carrier-pigeon"), ".") is True
    assert "Unknown readiness check type" in capsys.readouterr().err


# ----------------------------------------------------------------------
# wait_for
# ----------------------------------------------------------------------

def test_wait_for_nothing_is_immediately_true(monkeypatch):
    calls = []
    monkeypatch.setattr(ReadinessChecker, "check_one", lambda *a: calls.append(a) or False)
    assert ReadinessChecker(sleep=lambda s: calls.append(s)).wait_for([], "/anywhere", ReadinessPolicy()) is True
    assert calls == []


def test_dependency_without_readiness_is_ready(monkeypatch):
    monkeypatch.setattr(ReadinessChecker, "check_one", lambda *a: pytest.fail("should not probe"))
    assert ReadinessChecker().wait_for([Dependency("db")], ".", ReadinessPolicy(max_retries=1))


def test_wait_for_retries_until_ready():
    answers = iter([False, False, True])
    sleeps = []
    checker = ReadinessChecker(sleep=sleeps.append)
    checker.check_one = lambda spec, path: next(answers)

    dep = Dependency("db", ReadinessSpec("port", {"port": 1}))
    assert checker.wait_for([dep], ".", ReadinessPolicy(max_retries=5, retry_delay_ms=250))
    assert sleeps == [0.25, 0.25]


def test_wait_for_gives_up_after_max_retries(capsys):
    rounds = []
    sleeps = []
    checker = ReadinessChecker(sleep=sleeps.append)
    checker.check_one = lambda spec, path: rounds.append(spec) or False

    dep = Dependency("db", ReadinessSpec("port", {"port": 1}))
    assert checker.wait_for([dep], ".", ReadinessPolicy(max_retries=3, retry_delay_ms=10)) is False
    assert len(rounds) == 3
    assert len(sleeps) == 2
    assert "db (port)" in capsys.readouterr().err


def test_probe_exception_counts_as_not_ready():
    checker = ReadinessChecker(sleep=lambda s: None)

    def explode(spec, path):
        raise RuntimeError("boom")

    checker.check_one = explode
    dep = Dependency("db", ReadinessSpec("http", {"url": "x"}))
    assert checker.wait_for([dep], ".", ReadinessPolicy(max_retries=2, retry_delay_ms=0)) is False


def test_all_dependencies_probed_each_round():
    seen = []
    lock = threading.Lock()
    barrier = threading.Barrier(2, timeout=5)

    def probe(spec, path):
        # both probes must be in flight at once to pass the barrier
        barrier.wait()
        with lock:
            seen.append(spec.config["port"])
        return True

    checker = ReadinessChecker()
    checker.check_one = probe
    deps = [Dependency("a", ReadinessSpec("port", {"port": 1})), Dependency("b", ReadinessSpec("port", {"port": 2}))]
    assert checker.wait_for(deps, ".", ReadinessPolicy(max_retries=1))
    assert sorted(seen) == [1, 2]


def test_closed_port_end_to_end(monkeypatch):
    calls = []
    real = readiness.check_port

    def counting(host, port, timeout_ms=5000):
        calls.append((host, port))
        return real(host, port, timeout_ms)

    monkeypatch.setattr(readiness, "check_port", counting)

    port = closed_port()
    dep = Dependency("svc", ReadinessSpec("port", {"host": "localhost", "port": port}, 500))
    start = time.monotonic()
    ok = ReadinessChecker().wait_for([dep], ".", ReadinessPolicy(max_retries=2, retry_delay_ms=10))

    assert ok is False
    assert calls == [("localhost", port), ("localhost", port)]
    assert time.monotonic() - start >= 0.01


def test_checks_run_in_the_waiting_project_dir(tmp_path):
    ws = (
        build(str(tmp_path))
        .add(project("db", readiness=check("pg_isready")), project("api"))
        .depends_on("api", "db")
        .build()
    )
    api = ws.project("api")
    runner = FakeRunner()

    ok = ReadinessChecker(runner=runner).wait_for(
        ws.dependency_readiness(api), ws.project_path(api), ReadinessPolicy(max_retries=1)
    )

    assert ok is True
    assert runner.argv == [["pg_isready"]]
    assert runner.calls[0]["cwd"] == tmp_path / "api"
