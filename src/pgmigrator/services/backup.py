"""Dump phase: copy each selected remote database into a local SQL file."""

import os
from typing import Callable, List, Optional, Set, Tuple

from rich.filesize import decimal

from pgmigrator.constants import DUMP_FILE_MODE
from pgmigrator.errors import MigratorError
from pgmigrator.models import BackupRecord, ConnectionParams, DatabaseOutcome


class BackupService:
    """Dumps databases one at a time; a failure only skips that database."""

    PHASE = "dump"

    def __init__(self, logger, console, client_service, filesystem_service):
        self.logger = logger
        self.console = console
        self.client_service = client_service
        self.filesystem_service = filesystem_service

    def _failed(self, database: str, detail: str) -> Tuple[None, DatabaseOutcome]:
        self.console.print(f"[red]  Dump of {database} failed. Skipping.[/red]")
        self.logger.error("Dump of %s failed: %s", database, detail)
        return None, DatabaseOutcome(database, self.PHASE, "failed", detail)

    def backup_database(
        self,
        remote: ConnectionParams,
        database: str,
        backup_dir: str,
        run_cmd: Callable,
        taken_names: Optional[Set[str]] = None,
    ) -> Tuple[Optional[BackupRecord], DatabaseOutcome]:
        try:
            reachable = self.client_service.test_connection(remote, database, run_cmd)
        except MigratorError as exc:
            return self._failed(database, f"Connectivity test failed: {exc}")
        if not reachable:
            return self._failed(database, f"Cannot connect to database '{database}'.")

        file_name = self.filesystem_service.dump_file_name(database, taken_names)
        output_path = os.path.join(backup_dir, file_name)
        try:
            result = self.client_service.dump_database(remote, database, output_path, run_cmd)
        except MigratorError as exc:
            self.filesystem_service.remove_file(output_path)
            return self._failed(database, str(exc))

        if result.returncode != 0 or not os.path.isfile(output_path):
            stderr = (result.stderr or "").strip()
            if result.returncode == 0:
                detail = f"pg_dump reported success but {output_path} was not created."
            else:
                detail = f"pg_dump exited with {result.returncode}."
            if stderr:
                detail = f"{detail} {stderr}"
            self.filesystem_service.remove_file(output_path)
            return self._failed(database, detail)

        self.filesystem_service.set_permissions(output_path, DUMP_FILE_MODE)
        size = os.path.getsize(output_path)
        self.console.print(f"[green]  {database} -> {output_path} ({decimal(size)})[/green]")
        self.logger.info("Dumped %s to %s (%s bytes)", database, output_path, size)
        record = BackupRecord(database=database, path=output_path, size_bytes=size)
        return record, DatabaseOutcome(database, self.PHASE, "success", decimal(size))

    def backup_databases(
        self,
        remote: ConnectionParams,
        databases: List[str],
        backup_dir: str,
        run_cmd: Callable,
    ) -> Tuple[List[BackupRecord], List[DatabaseOutcome]]:
        records: List[BackupRecord] = []
        outcomes: List[DatabaseOutcome] = []
        taken_names: Set[str] = set()

        for index, database in enumerate(databases, start=1):
            self.console.print(f"[blue]Dumping {database} ({index}/{len(databases)})...[/blue]")
            record, outcome = self.backup_database(remote, database, backup_dir, run_cmd, taken_names)
            outcomes.append(outcome)
            if record is not None:
                records.append(record)

        self.logger.info("Dumped %s of %s database(s).", len(records), len(databases))
        return records, outcomes
