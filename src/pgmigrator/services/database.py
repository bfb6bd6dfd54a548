"""Restore services for the local PostgreSQL container."""

import subprocess
from typing import Callable, List, Optional

from pgmigrator.constants import LOCAL_SUPERUSER, MAINTENANCE_DATABASE
from pgmigrator.errors import MigratorError
from pgmigrator.models import BackupRecord, DatabaseOutcome, TargetContainer
from pgmigrator.services.postgres_client import quote_ident, quote_literal


class DatabaseService:
    """Recreates databases inside the target container and loads their dumps."""

    PHASE = "restore"
    MAX_LOGGED_WARNINGS = 5
    FORCE_DROP_MIN_VERSION = 130000

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def _psql(
        self,
        target: TargetContainer,
        password: str,
        sql: str,
        run_cmd: Callable,
    ) -> subprocess.CompletedProcess:
        return run_cmd(
            [
                "docker",
                "exec",
                "-e",
                "PGPASSWORD",
                target.name,
                "psql",
                "-U",
                LOCAL_SUPERUSER,
                "-d",
                MAINTENANCE_DATABASE,
                "-w",
                "-t",
                "-A",
                "-v",
                "ON_ERROR_STOP=1",
                "-c",
                sql,
            ],
            check=False,
            capture_output=True,
            extra_env={"PGPASSWORD": password},
        )

    def database_exists(self, target: TargetContainer, password: str, name: str, run_cmd) -> bool:
        result = self._psql(
            target,
            password,
            f"SELECT 1 FROM pg_database WHERE datname = {quote_literal(name)};",
            run_cmd,
        )
        return result.returncode == 0 and (result.stdout or "").strip() == "1"

    def server_version_num(self, target: TargetContainer, password: str, run_cmd) -> Optional[int]:
        result = self._psql(target, password, "SHOW server_version_num;", run_cmd)
        value = (result.stdout or "").strip()
        if result.returncode != 0 or not value.isdigit():
            return None
        return int(value)

    def drop_database(
        self, target: TargetContainer, password: str, name: str, run_cmd, force: bool = False
    ) -> subprocess.CompletedProcess:
        # WITH (FORCE) needs PostgreSQL 13+ and terminates open sessions first.
        suffix = " WITH (FORCE)" if force else ""
        return self._psql(target, password, f"DROP DATABASE {quote_ident(name)}{suffix};", run_cmd)

    def create_database(
        self, target: TargetContainer, password: str, name: str, run_cmd
    ) -> subprocess.CompletedProcess:
        return self._psql(target, password, f"CREATE DATABASE {quote_ident(name)};", run_cmd)

    def load_dump(
        self,
        target: TargetContainer,
        password: str,
        record: BackupRecord,
        run_cmd: Callable,
    ) -> subprocess.CompletedProcess:
        result = run_cmd(
            [
                "docker",
                "exec",
                "-i",
                "-e",
                "PGPASSWORD",
                target.name,
                "psql",
                "-U",
                LOCAL_SUPERUSER,
                "-d",
                record.database,
                "-q",
            ],
            check=False,
            capture_output=True,
            extra_env={"PGPASSWORD": password},
            stdin_path=record.path,
        )

        # Load errors are tolerated: dumps from other servers often reference
        # extensions or roles missing on the target.
        warnings = [line for line in (result.stderr or "").splitlines() if line.strip()]
        if warnings:
            self.logger.warning(
                "%s warning(s) while loading %s. First: %s",
                len(warnings),
                record.database,
                "; ".join(warnings[: self.MAX_LOGGED_WARNINGS]),
            )
        if result.returncode != 0:
            self.logger.warning("psql exited with %s while loading %s", result.returncode, record.database)
        return result

    def _failed(self, name: str, detail: str) -> DatabaseOutcome:
        self.console.print(f"[red]  Restore of {name} failed. Skipping.[/red]")
        self.logger.error("Restore of %s failed: %s", name, detail)
        return DatabaseOutcome(name, self.PHASE, "failed", detail)

    def restore_backup(
        self,
        target: TargetContainer,
        password: str,
        record: BackupRecord,
        run_cmd: Callable,
        force_drop: bool = False,
    ) -> DatabaseOutcome:
        name = record.database

        try:
            if self.database_exists(target, password, name, run_cmd):
                self.console.print(f"[yellow]  {name} exists on target, dropping it.[/yellow]")
                dropped = self.drop_database(target, password, name, run_cmd, force=force_drop)
                if dropped.returncode != 0:
                    reason = (dropped.stderr or "").strip() or f"psql exited with {dropped.returncode}"
                    return self._failed(name, f"Could not drop existing database: {reason}")

            created = self.create_database(target, password, name, run_cmd)
            if created.returncode != 0:
                reason = (created.stderr or "").strip() or f"psql exited with {created.returncode}"
                return self._failed(name, f"Could not create database: {reason}")

            loaded = self.load_dump(target, password, record, run_cmd)
        except MigratorError as exc:
            return self._failed(name, str(exc))

        detail = None
        if loaded.returncode != 0 or (loaded.stderr or "").strip():
            detail = "loaded with warnings"
        self.console.print(f"[green]  {name} restored.[/green]")
        self.logger.info("Restored %s from %s", name, record.path)
        return DatabaseOutcome(name, self.PHASE, "success", detail)

    def restore_backups(
        self,
        target: TargetContainer,
        password: str,
        records: List[BackupRecord],
        run_cmd: Callable,
    ) -> List[DatabaseOutcome]:
        try:
            version_num = self.server_version_num(target, password, run_cmd)
        except MigratorError as exc:
            self.logger.warning("Could not read the target server version: %s", exc)
            version_num = None
        force_drop = version_num is not None and version_num >= self.FORCE_DROP_MIN_VERSION
        self.logger.debug("Target server_version_num=%s, forced drop: %s", version_num, force_drop)

        outcomes = []
        for index, record in enumerate(records, start=1):
            self.console.print(
                f"[blue]Restoring {record.database} ({index}/{len(records)})...[/blue]"
            )
            outcomes.append(self.restore_backup(target, password, record, run_cmd, force_drop=force_drop))
        return outcomes
