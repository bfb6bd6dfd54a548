"""Final summary printed after a migration run."""

from typing import List, Optional

from rich.markup import escape
from rich.table import Table

from pgmigrator.constants import CONTAINER_CREATED
from pgmigrator.models import ConnectionParams, DatabaseOutcome, TargetContainer


class ReportService:
    def __init__(self, console):
        self.console = console

    def outcome_table(self, outcomes: List[DatabaseOutcome]) -> Table:
        table = Table(title="Migration results")
        table.add_column("Database")
        table.add_column("Dump")
        table.add_column("Restore")
        table.add_column("Details", overflow="fold")

        by_database = {}
        for outcome in outcomes:
            by_database.setdefault(outcome.database, {})[outcome.phase] = outcome

        for database, phases in by_database.items():
            dump = phases.get("dump")
            restore = phases.get("restore")
            details = [item.detail for item in (dump, restore) if item is not None and item.detail]
            table.add_row(
                escape(database),
                self._status_cell(dump),
                self._status_cell(restore),
                " | ".join(details),
            )
        return table

    @staticmethod
    def _status_cell(outcome: Optional[DatabaseOutcome]) -> str:
        if outcome is None:
            return "[dim]-[/dim]"
        if outcome.succeeded:
            return "[green]ok[/green]"
        return "[red]failed[/red]"

    def print_summary(
        self,
        backup_dir: str,
        target: TargetContainer,
        local: ConnectionParams,
        outcomes: List[DatabaseOutcome],
    ):
        restored = [o.database for o in outcomes if o.phase == "restore" and o.succeeded]

        self.console.print()
        self.console.print(self.outcome_table(outcomes))
        self.console.print(f"[bold]Backup directory:[/bold] {backup_dir}")
        if restored:
            names = escape(", ".join(restored))
            self.console.print(f"[bold green]Restored databases:[/bold green] {names}")
        else:
            self.console.print("[bold red]No database was restored.[/bold red]")

        self.console.print("[bold]Connect to the local instance:[/bold]")
        self.console.print(f"  Host:      {local.host}")
        self.console.print(f"  Port:      {local.port}")
        self.console.print(f"  User:      {local.username}")
        self.console.print(f"  Database:  {local.database}")
        self.console.print(f"  Container: {target.name}")
        if target.storage_path:
            self.console.print(f"  Storage:   {target.storage_path}")
        elif target.state == CONTAINER_CREATED:
            self.console.print("  Storage:   [yellow]none (data is lost when the container is removed)[/yellow]")
        else:
            self.console.print("  Storage:   unknown (reused container)")
        self.console.print(
            f"  psql -h {local.host} -p {local.port} -U {local.username} -d {local.database}",
            markup=False,
            highlight=False,
        )
