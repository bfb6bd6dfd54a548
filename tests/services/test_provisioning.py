import pytest

from pgmigrator.errors import MigratorError, RunCancelled
from pgmigrator.models import TargetSettings
from pgmigrator.services.provisioning import ProvisioningService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.messages = []

    def print(self, *args, **_kwargs):
        self.messages.extend(str(arg) for arg in args)


class FakeDockerRuntime:
    def __init__(self, status=None, mount=None):
        self.status = status
        self.mount = mount
        self.calls = []

    def container_status(self, name, run_cmd):
        return self.status

    def data_mount(self, name, run_cmd):
        return self.mount

    def stop_container(self, name, run_cmd):
        self.calls.append("stop")

    def remove_container(self, name, run_cmd):
        self.calls.append("remove")

    def start_container(self, name, run_cmd):
        self.calls.append("start")

    def run_postgres_container(self, settings, run_cmd):
        self.calls.append("run")

    def wait_for_ready(self, name, password, run_cmd, max_retries=30, interval_seconds=2.0):
        self.calls.append("wait")


class FakePrompt:
    def __init__(self, answer):
        self.answer = answer
        self.asked = []

    def choose(self, label, choices, default=None):
        self.asked.append(label)
        return self.answer


def _settings(storage_path=None) -> TargetSettings:
    return TargetSettings("pg_local", 15432, "appdb", "secret", storage_path, "16")


def _service(docker, prompt=None, interactive=True, console=None) -> ProvisioningService:
    return ProvisioningService(
        logger=DummyLogger(),
        console=console or DummyConsole(),
        docker_runtime_service=docker,
        prompt_service=prompt or FakePrompt("abort"),
        interactive=interactive,
    )


def test_absent_container_is_created_and_awaited(tmp_path):
    docker = FakeDockerRuntime(status=None)

    target = _service(docker).provision(_settings(str(tmp_path)), run_cmd=None)

    assert docker.calls == ["run", "wait"]
    assert target.state == "created"
    assert target.storage_path == str(tmp_path)


def test_reuse_issues_no_stop_remove_or_run_calls():
    docker = FakeDockerRuntime(status="running")
    prompt = FakePrompt("reuse")

    target = _service(docker, prompt=prompt).provision(_settings(), run_cmd=None)

    assert docker.calls == ["wait"]
    assert target.state == "existing"
    assert prompt.asked


def test_reused_container_reports_its_data_mount():
    docker = FakeDockerRuntime(status="running", mount="/srv/pgdata")

    target = _service(docker).provision(_settings(), run_cmd=None, on_conflict="reuse")

    assert target.storage_path == "/srv/pgdata"
    assert target.state == "existing"


def test_reuse_starts_a_stopped_container():
    docker = FakeDockerRuntime(status="exited")

    _service(docker).provision(_settings(), run_cmd=None, on_conflict="reuse")

    assert docker.calls == ["start", "wait"]


def test_replace_stops_removes_and_recreates():
    docker = FakeDockerRuntime(status="running")

    target = _service(docker).provision(_settings(), run_cmd=None, on_conflict="replace")

    assert docker.calls == ["stop", "remove", "run", "wait"]
    assert target.state == "created"


def test_abort_raises_run_cancelled_without_side_effects():
    docker = FakeDockerRuntime(status="running")

    with pytest.raises(RunCancelled):
        _service(docker, prompt=FakePrompt("abort")).provision(_settings(), run_cmd=None)

    assert docker.calls == []


def test_non_interactive_conflict_without_choice_is_fatal():
    docker = FakeDockerRuntime(status="running")

    with pytest.raises(MigratorError, match="--on-conflict"):
        _service(docker, interactive=False).provision(_settings(), run_cmd=None)


def test_missing_storage_path_is_surfaced_to_the_user():
    console = DummyConsole()

    _service(FakeDockerRuntime(), console=console).provision(_settings(), run_cmd=None)

    assert any("lost" in message for message in console.messages)
