"""Target container provisioning for PgMigrator."""

from typing import Callable, Optional

from pgmigrator.constants import CONFLICT_CHOICES, CONTAINER_CREATED, CONTAINER_EXISTING
from pgmigrator.errors import MigratorError, RunCancelled
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import TargetContainer, TargetSettings


class ProvisioningService:
    """Creates the local container, or reuses/replaces one with the same name."""

    def __init__(self, logger, console, docker_runtime_service, prompt_service, interactive=True):
        self.logger = logger
        self.console = console
        self.docker_runtime_service = docker_runtime_service
        self.prompt_service = prompt_service
        self.interactive = interactive

    def resolve_conflict(self, name: str, on_conflict: Optional[str]) -> str:
        if on_conflict:
            if on_conflict not in CONFLICT_CHOICES:
                raise MigratorError(
                    f"Invalid conflict choice '{on_conflict}'. Use one of: {', '.join(CONFLICT_CHOICES)}."
                )
            return on_conflict

        if not self.interactive:
            raise MigratorError(actionable_error("container_conflict", name=name))

        self.console.print(f"[yellow]Container '{name}' already exists.[/yellow]")
        return self.prompt_service.choose(
            "Replace it, reuse it as-is, or abort?",
            choices=CONFLICT_CHOICES,
            default="abort",
        )

    def provision(
        self,
        settings: TargetSettings,
        run_cmd: Callable,
        on_conflict: Optional[str] = None,
        ready_retries: int = 30,
        ready_interval: float = 2.0,
    ) -> TargetContainer:
        name = settings.container_name
        status = self.docker_runtime_service.container_status(name, run_cmd)

        if status is not None:
            choice = self.resolve_conflict(name, on_conflict)
            self.logger.info("Container %s exists (%s); choice: %s", name, status, choice)

            if choice == "abort":
                raise RunCancelled(f"Container '{name}' already exists; run aborted by user.")

            if choice == "reuse":
                if status != "running":
                    self.docker_runtime_service.start_container(name, run_cmd)
                self.docker_runtime_service.wait_for_ready(
                    name,
                    settings.password,
                    run_cmd,
                    max_retries=ready_retries,
                    interval_seconds=ready_interval,
                )
                storage_path = self.docker_runtime_service.data_mount(name, run_cmd)
                self.console.print(f"[green]Reusing container {name}.[/green]")
                return TargetContainer(
                    name=name,
                    port=settings.port,
                    storage_path=storage_path,
                    state=CONTAINER_EXISTING,
                )

            self.docker_runtime_service.stop_container(name, run_cmd)
            self.docker_runtime_service.remove_container(name, run_cmd)

        if not settings.storage_path:
            message = (
                "No storage path given: data lives inside the container and is lost "
                "when the container is removed."
            )
            self.console.print(f"[yellow]Warning:[/yellow] {message}")
            self.logger.warning(message)

        self.docker_runtime_service.run_postgres_container(settings, run_cmd)
        self.docker_runtime_service.wait_for_ready(
            name,
            settings.password,
            run_cmd,
            max_retries=ready_retries,
            interval_seconds=ready_interval,
        )
        return TargetContainer(
            name=name,
            port=settings.port,
            storage_path=settings.storage_path,
            state=CONTAINER_CREATED,
        )
