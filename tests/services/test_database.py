import subprocess

from pgmigrator.errors import MigratorError
from pgmigrator.models import BackupRecord, TargetContainer
from pgmigrator.services.database import DatabaseService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _target() -> TargetContainer:
    return TargetContainer(name="pg_local", port=15432, storage_path=None, state="created")


def _service() -> DatabaseService:
    return DatabaseService(logger=DummyLogger(), console=DummyConsole())


class FakeTarget:
    """Simulates the target container's catalog for psql calls."""

    def __init__(self, existing=(), uncreatable=(), undroppable=(), hanging_loads=(), version_num="160002"):
        self.databases = set(existing)
        self.uncreatable = set(uncreatable)
        self.undroppable = set(undroppable)
        self.hanging_loads = set(hanging_loads)
        self.version_num = version_num
        self.statements = []
        self.loads = []

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        assert kwargs["extra_env"] == {"PGPASSWORD": "local-secret"}
        if "-c" not in cmd:
            database = cmd[cmd.index("-d") + 1]
            self.loads.append((database, kwargs["stdin_path"]))
            if database in self.hanging_loads:
                raise MigratorError("Command timed out after 0.5s: docker exec")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr='ERROR:  role "app" does not exist')

        sql = cmd[-1]
        self.statements.append(sql)
        if sql == "SHOW server_version_num;":
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{self.version_num}\n", stderr="")
        if sql.startswith("SELECT 1 FROM pg_database"):
            name = sql.split("'")[1]
            return subprocess.CompletedProcess(cmd, 0, stdout="1\n" if name in self.databases else "", stderr="")
        if sql.startswith("DROP DATABASE"):
            name = sql.split('"')[1]
            if name in self.undroppable:
                return subprocess.CompletedProcess(
                    cmd, 1, stdout="", stderr="ERROR:  database \"app_db\" is being accessed by other users"
                )
            self.databases.discard(name)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        if sql.startswith("CREATE DATABASE"):
            name = sql.split('"')[1]
            if name in self.uncreatable or name in self.databases:
                return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="ERROR: cannot create")
            self.databases.add(name)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        raise AssertionError(f"unexpected SQL: {sql}")


def test_existing_database_is_dropped_before_recreate(tmp_path):
    dump = tmp_path / "app_db.sql"
    dump.write_text("CREATE TABLE t (id int);\n", encoding="utf-8")
    fake = FakeTarget(existing={"app_db"})

    outcomes = _service().restore_backups(
        _target(),
        "local-secret",
        [BackupRecord("app_db", str(dump), dump.stat().st_size)],
        fake,
    )

    assert fake.statements == [
        "SHOW server_version_num;",
        "SELECT 1 FROM pg_database WHERE datname = 'app_db';",
        'DROP DATABASE "app_db" WITH (FORCE);',
        'CREATE DATABASE "app_db";',
    ]
    assert fake.loads == [("app_db", str(dump))]
    assert outcomes[0].succeeded
    assert outcomes[0].detail == "loaded with warnings"


def test_create_failure_skips_load_and_continues(tmp_path):
    first = tmp_path / "bad.sql"
    first.write_text("", encoding="utf-8")
    second = tmp_path / "good.sql"
    second.write_text("", encoding="utf-8")
    fake = FakeTarget(uncreatable={"bad"})

    outcomes = _service().restore_backups(
        _target(),
        "local-secret",
        [BackupRecord("bad", str(first), 0), BackupRecord("good", str(second), 0)],
        fake,
    )

    assert [outcome.status for outcome in outcomes] == ["failed", "success"]
    assert fake.loads == [("good", str(second))]


def test_reserved_and_mixed_case_names_are_quoted(tmp_path):
    dump = tmp_path / "User-Data.sql"
    dump.write_text("", encoding="utf-8")
    fake = FakeTarget()

    _service().restore_backups(
        _target(),
        "local-secret",
        [BackupRecord("User-Data", str(dump), 0)],
        fake,
    )

    assert 'CREATE DATABASE "User-Data";' in fake.statements


def test_servers_older_than_13_get_a_plain_drop(tmp_path):
    dump = tmp_path / "app_db.sql"
    dump.write_text("", encoding="utf-8")
    fake = FakeTarget(existing={"app_db"}, version_num="120015")

    _service().restore_backups(_target(), "local-secret", [BackupRecord("app_db", str(dump), 0)], fake)

    assert 'DROP DATABASE "app_db";' in fake.statements


def test_drop_failure_is_reported_instead_of_create_error(tmp_path):
    dump = tmp_path / "app_db.sql"
    dump.write_text("", encoding="utf-8")
    fake = FakeTarget(existing={"app_db"}, undroppable={"app_db"})

    outcomes = _service().restore_backups(
        _target(), "local-secret", [BackupRecord("app_db", str(dump), 0)], fake
    )

    assert outcomes[0].status == "failed"
    assert outcomes[0].detail.startswith("Could not drop existing database")
    assert "being accessed by other users" in outcomes[0].detail
    assert not any(sql.startswith("CREATE DATABASE") for sql in fake.statements)
    assert fake.loads == []


def test_timed_out_load_only_fails_that_database(tmp_path):
    first = tmp_path / "big.sql"
    first.write_text("", encoding="utf-8")
    second = tmp_path / "small.sql"
    second.write_text("", encoding="utf-8")
    fake = FakeTarget(hanging_loads={"big"})

    outcomes = _service().restore_backups(
        _target(),
        "local-secret",
        [BackupRecord("big", str(first), 0), BackupRecord("small", str(second), 0)],
        fake,
    )

    assert [outcome.status for outcome in outcomes] == ["failed", "success"]
    assert "timed out" in outcomes[0].detail
    assert [load[0] for load in fake.loads] == ["big", "small"]
