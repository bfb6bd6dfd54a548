"""psql/pg_dump client service for the remote side of PgMigrator."""

import re
import shutil
import subprocess
from typing import Callable, List, Optional

from packaging import version

from pgmigrator.constants import EXCLUDED_DATABASES
from pgmigrator.errors import MigratorError
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import ConnectionParams

LIST_DATABASES_SQL = (
    "SELECT datname FROM pg_database WHERE datistemplate = false AND datname <> 'postgres';"
)


def quote_ident(name: str) -> str:
    """Quotes a SQL identifier so reserved words, case and hyphens survive."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def parse_database_list(output: str) -> List[str]:
    names = []
    for line in output.splitlines():
        cleaned = line.strip()
        if not cleaned or cleaned in EXCLUDED_DATABASES:
            continue
        names.append(cleaned)
    return names


class PostgresClientService:
    """Runs psql and pg_dump natively or through a throwaway postgres container."""

    TOOLS = ("psql", "pg_dump")

    def __init__(self, logger, console, client_image: str):
        self.logger = logger
        self.console = console
        self.client_image = client_image
        self.use_native = False

    def detect_native_tools(self) -> bool:
        missing = [tool for tool in self.TOOLS if shutil.which(tool) is None]
        self.use_native = not missing

        if self.use_native:
            self.console.print("[green]Using local psql/pg_dump client tools.[/green]")
        else:
            self.console.print(
                f"[yellow]{', '.join(missing)} not found locally. "
                f"Falling back to the {self.client_image} image for client tools.[/yellow]"
            )
        self.logger.info("Client tool mode: %s", "native" if self.use_native else "container")
        return self.use_native

    def _prefix(self) -> List[str]:
        if self.use_native:
            return []
        return [
            "docker",
            "run",
            "--rm",
            "-i",
            "--network",
            "host",
            "-e",
            "PGPASSWORD",
            self.client_image,
        ]

    def _connection_args(self, params: ConnectionParams) -> List[str]:
        return ["-h", params.host, "-p", str(params.port), "-U", params.username, "-w"]

    def build_query_command(self, params: ConnectionParams, sql: str, database: str) -> List[str]:
        return (
            self._prefix()
            + ["psql"]
            + self._connection_args(params)
            + ["-d", database, "-t", "-A", "-v", "ON_ERROR_STOP=1", "-c", sql]
        )

    def build_dump_command(self, params: ConnectionParams, database: str) -> List[str]:
        return (
            self._prefix()
            + ["pg_dump"]
            + self._connection_args(params)
            + ["--no-owner", "--no-acl", "-d", database]
        )

    def query(
        self,
        params: ConnectionParams,
        sql: str,
        run_cmd: Callable,
        database: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        return run_cmd(
            self.build_query_command(params, sql, database or params.database),
            check=False,
            capture_output=True,
            extra_env={"PGPASSWORD": params.password},
        )

    def test_connection(self, params: ConnectionParams, database: str, run_cmd: Callable) -> bool:
        result = self.query(params, "SELECT 1;", run_cmd, database=database)
        if result.returncode != 0:
            self.logger.debug("Connectivity test failed for %s: %s", database, result.stderr)
        return result.returncode == 0

    def list_databases(self, params: ConnectionParams, run_cmd: Callable) -> List[str]:
        self.console.print(f"[blue]Listing databases on {params.host}:{params.port}...[/blue]")
        result = self.query(params, LIST_DATABASES_SQL, run_cmd)
        if result.returncode != 0:
            detail = (result.stderr or "").strip() or f"psql exited with {result.returncode}"
            raise MigratorError(
                actionable_error(
                    "remote_connection_failed",
                    host=params.host,
                    port=params.port,
                    detail=detail,
                )
            )
        return parse_database_list(result.stdout or "")

    def dump_database(
        self,
        params: ConnectionParams,
        database: str,
        output_path: str,
        run_cmd: Callable,
    ) -> subprocess.CompletedProcess:
        return run_cmd(
            self.build_dump_command(params, database),
            check=False,
            capture_output=True,
            extra_env={"PGPASSWORD": params.password},
            stdout_path=output_path,
        )

    def server_version(self, params: ConnectionParams, run_cmd: Callable) -> Optional[str]:
        result = self.query(params, "SHOW server_version;", run_cmd)
        if result.returncode != 0:
            return None
        return self._first_version_token(result.stdout or "")

    def client_version(self, run_cmd: Callable) -> Optional[str]:
        if not self.use_native:
            tag = self.client_image.rpartition(":")[2]
            return self._first_version_token(tag)

        result = run_cmd(["pg_dump", "--version"], check=False, capture_output=True)
        if result.returncode != 0:
            return None
        return self._first_version_token(result.stdout or "")

    @staticmethod
    def _first_version_token(text: str) -> Optional[str]:
        match = re.search(r"\d+(?:\.\d+)*", text)
        return match.group(0) if match else None

    @staticmethod
    def _parse_version(value: Optional[str]) -> Optional[version.Version]:
        if not value:
            return None
        try:
            return version.parse(value)
        except version.InvalidVersion:
            return None

    def check_compatibility(self, params: ConnectionParams, run_cmd: Callable) -> bool:
        """Warns when pg_dump is older than the server it has to dump."""
        server = self._parse_version(self.server_version(params, run_cmd))
        client = self._parse_version(self.client_version(run_cmd))
        if server is None or client is None:
            self.logger.debug("Skipping client/server version check (server=%s, client=%s)", server, client)
            return True

        self.logger.info("Remote server version %s, pg_dump version %s", server, client)
        if client.major < server.major:
            message = (
                f"pg_dump {client} is older than the remote server {server}; dumps will fail. "
                f"Install a newer client or use --postgres-version {server.major}."
            )
            self.console.print(f"[yellow]Warning:[/yellow] {message}")
            self.logger.warning(message)
            return False
        return True
