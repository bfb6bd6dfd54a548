"""Collects and validates the connection parameters for both sides."""

from typing import Optional

from pgmigrator.constants import (
    DEFAULT_CONTAINER_NAME,
    DEFAULT_LOCAL_DATABASE,
    DEFAULT_LOCAL_PORT,
    DEFAULT_POSTGRES_VERSION,
    DEFAULT_REMOTE_DATABASE,
    DEFAULT_REMOTE_PORT,
    DEFAULT_REMOTE_USER,
)
from pgmigrator.errors import MigratorError
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import ConnectionParams, TargetSettings


class ParameterService:
    """Fills missing values from prompts, or from defaults when non-interactive."""

    def __init__(self, logger, console, prompt_service, validation_service, interactive=True):
        self.logger = logger
        self.console = console
        self.prompt_service = prompt_service
        self.validation_service = validation_service
        self.interactive = interactive

    def _text(self, label: str, value, default: Optional[str] = None, required=True) -> Optional[str]:
        if value is not None:
            return str(value)
        if not self.interactive:
            if default is not None or not required:
                return default
            raise MigratorError(actionable_error("missing_parameter", label=label))
        return self.prompt_service.ask(label, default=default)

    def _port(self, label: str, value, default: int) -> int:
        if value is None:
            value = self.prompt_service.ask_int(label, default=default) if self.interactive else default
        return self.validation_service.validate_port(value, label)

    def _secret(self, label: str, value) -> str:
        if value is not None:
            return str(value)
        if not self.interactive:
            raise MigratorError(actionable_error("missing_parameter", label=label))
        return self.prompt_service.ask(label, password=True)

    def collect_remote(
        self,
        host=None,
        port=None,
        database=None,
        username=None,
        password=None,
    ) -> ConnectionParams:
        self.console.print("[bold]Remote PostgreSQL server[/bold]")
        host = self.validation_service.validate_required(self._text("Remote host", host), "Remote host")
        port = self._port("Remote port", port, DEFAULT_REMOTE_PORT)
        database = self.validation_service.validate_required(
            self._text("Remote initial database", database, DEFAULT_REMOTE_DATABASE),
            "Remote initial database",
        )
        username = self.validation_service.validate_required(
            self._text("Remote username", username, DEFAULT_REMOTE_USER),
            "Remote username",
        )
        password = self._secret("Remote password", password)
        return ConnectionParams(
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
        )

    def collect_target(
        self,
        container_name=None,
        port=None,
        database=None,
        password=None,
        storage_path=None,
        postgres_version=None,
    ) -> TargetSettings:
        self.console.print("[bold]Local Docker target[/bold]")
        container_name = self.validation_service.validate_container_name(
            self._text("Container name", container_name, DEFAULT_CONTAINER_NAME)
        )
        port = self._port("Local port", port, DEFAULT_LOCAL_PORT)
        database = self.validation_service.validate_required(
            self._text("Local initial database", database, DEFAULT_LOCAL_DATABASE),
            "Local initial database",
        )
        password = self._secret("Local postgres password", password)
        if not password:
            raise MigratorError("Local postgres password must not be empty.")
        storage_path = self.validation_service.validate_storage_path(
            self._text(
                "Storage path for data (leave empty for none)",
                storage_path,
                default="",
                required=False,
            )
        )
        return TargetSettings(
            container_name=container_name,
            port=port,
            database=database,
            password=password,
            storage_path=storage_path,
            postgres_version=str(postgres_version or DEFAULT_POSTGRES_VERSION),
        )
