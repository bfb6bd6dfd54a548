"""Database selection rendering and parsing."""

from typing import List

from rich.markup import escape
from rich.table import Table

from pgmigrator.errors import SelectionError
from pgmigrator.errors_catalog import actionable_error


def parse_selection(raw: str, databases: List[str]) -> List[str]:
    """Maps ``all`` or comma-separated 1-based indices onto database names.

    Names come back in the order the indices were typed; repeated indices are
    kept once.
    """
    text = (raw or "").strip()
    if text.lower() == "all":
        return list(databases)

    def invalid() -> SelectionError:
        return SelectionError(
            actionable_error("invalid_selection", selection=raw, count=len(databases))
        )

    if not text:
        raise invalid()

    selected: List[str] = []
    for token in text.split(","):
        token = token.strip()
        if not (token.isascii() and token.isdigit()):
            raise invalid()
        index = int(token)
        if index < 1 or index > len(databases):
            raise invalid()
        name = databases[index - 1]
        if name not in selected:
            selected.append(name)
    return selected


class SelectionService:
    def __init__(self, logger, console, prompt_service):
        self.logger = logger
        self.console = console
        self.prompt_service = prompt_service

    def render(self, databases: List[str]):
        table = Table(title="Remote databases")
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Database")
        for index, name in enumerate(databases, start=1):
            table.add_row(str(index), escape(name))
        self.console.print(table)

    def select(self, databases: List[str], raw_selection=None) -> List[str]:
        self.render(databases)
        if raw_selection is None:
            raw_selection = self.prompt_service.ask(
                "Databases to migrate (comma-separated numbers or 'all')"
            )
        selected = parse_selection(raw_selection, databases)
        self.logger.info("Selected databases: %s", ", ".join(selected))
        return selected
