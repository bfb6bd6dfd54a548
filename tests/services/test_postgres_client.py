import subprocess

import pytest

import pgmigrator.services.postgres_client as postgres_client_module
from pgmigrator.errors import MigratorError
from pgmigrator.models import ConnectionParams
from pgmigrator.services.postgres_client import (
    LIST_DATABASES_SQL,
    PostgresClientService,
    parse_database_list,
    quote_ident,
    quote_literal,
)


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args if args else message)


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _remote() -> ConnectionParams:
    return ConnectionParams(
        host="db.example.com",
        port=5432,
        database="postgres",
        username="admin",
        password="remote-secret",
    )


def _service(use_native=True, logger=None) -> PostgresClientService:
    service = PostgresClientService(
        logger=logger or DummyLogger(),
        console=DummyConsole(),
        client_image="postgres:16",
    )
    service.use_native = use_native
    return service


def test_quoting_handles_reserved_words_and_embedded_quotes():
    assert quote_ident("user") == '"user"'
    assert quote_ident('My"Db-1') == '"My""Db-1"'
    assert quote_literal("it's") == "'it''s'"


def test_parse_database_list_trims_and_drops_system_databases():
    output = " app_db \n\npostgres\ntemplate0\nReporting-DB\n"

    assert parse_database_list(output) == ["app_db", "Reporting-DB"]


def test_detect_native_tools_requires_both_binaries(monkeypatch):
    monkeypatch.setattr(
        postgres_client_module.shutil,
        "which",
        lambda name: "/usr/bin/psql" if name == "psql" else None,
    )
    service = _service(use_native=True)

    assert service.detect_native_tools() is False
    assert service.use_native is False


def test_containerized_commands_use_client_image_and_env_password():
    service = _service(use_native=False)

    cmd = service.build_query_command(_remote(), "SELECT 1;", "app_db")

    assert cmd[:9] == ["docker", "run", "--rm", "-i", "--network", "host", "-e", "PGPASSWORD", "postgres:16"]
    assert cmd[9] == "psql"
    assert all("remote-secret" not in part for part in cmd)


def test_dump_command_strips_owner_and_acl():
    cmd = _service().build_dump_command(_remote(), "app_db")

    assert cmd[0] == "pg_dump"
    assert "--no-owner" in cmd
    assert "--no-acl" in cmd
    assert cmd[-2:] == ["-d", "app_db"]


def test_list_databases_queries_catalog_and_filters():
    captured = {}

    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        captured["cmd"] = cmd
        captured["env"] = kwargs.get("extra_env")
        return subprocess.CompletedProcess(cmd, 0, stdout="postgres\napp_db\n", stderr="")

    names = _service().list_databases(_remote(), fake_run_cmd)

    assert names == ["app_db"]
    assert captured["cmd"][-1] == LIST_DATABASES_SQL
    assert captured["env"] == {"PGPASSWORD": "remote-secret"}


def test_list_databases_connection_failure_is_fatal():
    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        return subprocess.CompletedProcess(cmd, 2, stdout="", stderr="password authentication failed")

    with pytest.raises(MigratorError, match="password authentication failed"):
        _service().list_databases(_remote(), fake_run_cmd)


def test_check_compatibility_warns_when_pg_dump_is_older_than_server():
    logger = DummyLogger()
    service = _service(use_native=True, logger=logger)

    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        if cmd[:2] == ["pg_dump", "--version"]:
            return subprocess.CompletedProcess(cmd, 0, stdout="pg_dump (PostgreSQL) 14.9\n", stderr="")
        return subprocess.CompletedProcess(cmd, 0, stdout="16.2 (Debian 16.2-1.pgdg120+2)\n", stderr="")

    assert service.check_compatibility(_remote(), fake_run_cmd) is False
    assert any("--postgres-version 16" in warning for warning in logger.warnings)


def test_check_compatibility_uses_image_tag_in_container_mode():
    service = _service(use_native=False)

    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        assert "--version" not in cmd
        return subprocess.CompletedProcess(cmd, 0, stdout="15.4\n", stderr="")

    assert service.check_compatibility(_remote(), fake_run_cmd) is True
