"""Docker runtime services for PgMigrator."""

import time
from typing import Callable, List, Optional

from pgmigrator.constants import (
    CONTAINER_DATA_DIR,
    CONTAINER_POSTGRES_PORT,
    LOCAL_SUPERUSER,
    MAINTENANCE_DATABASE,
)
from pgmigrator.errors import MigratorError
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import TargetSettings


class DockerRuntimeService:
    """Wraps the docker CLI calls used to manage the target container."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def validate_environment(self, run_cmd: Callable):
        self.console.print("[blue]Validating Docker environment...[/blue]")
        try:
            result = run_cmd(
                ["docker", "info", "--format", "{{.ServerVersion}}"],
                check=False,
                capture_output=True,
            )
        except MigratorError as exc:
            raise MigratorError(actionable_error("docker_unavailable", detail=str(exc))) from exc

        if result.returncode != 0:
            detail = (result.stderr or "").strip() or "the Docker daemon is not reachable"
            raise MigratorError(actionable_error("docker_unavailable", detail=detail))

        server_version = (result.stdout or "").strip()
        self.logger.debug("Docker server version: %s", server_version or "<unknown>")
        self.console.print("[green]Docker is available.[/green]")

    def container_status(self, name: str, run_cmd: Callable) -> Optional[str]:
        """Returns the state of the container called exactly ``name``, or None."""
        result = run_cmd(
            [
                "docker",
                "ps",
                "-a",
                "--filter",
                f"name=^/{name}$",
                "--format",
                "{{.Names}}|{{.State}}",
            ],
            check=True,
            capture_output=True,
        )

        for line in (result.stdout or "").splitlines():
            container_name, _, state = line.strip().partition("|")
            if container_name == name:
                return state or "unknown"
        return None

    def data_mount(self, name: str, run_cmd: Callable) -> Optional[str]:
        """Returns the host source mounted on the container's data directory."""
        template = (
            '{{range .Mounts}}{{if eq .Destination "'
            + CONTAINER_DATA_DIR
            + '"}}{{.Source}}{{end}}{{end}}'
        )
        result = run_cmd(
            ["docker", "inspect", "--format", template, name],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            self.logger.debug("docker inspect failed for %s: %s", name, (result.stderr or "").strip())
            return None
        return (result.stdout or "").strip() or None

    def stop_container(self, name: str, run_cmd: Callable):
        self.logger.info("Stopping container %s", name)
        run_cmd(["docker", "stop", name], check=True, capture_output=True)

    def remove_container(self, name: str, run_cmd: Callable):
        self.logger.info("Removing container %s", name)
        run_cmd(["docker", "rm", name], check=True, capture_output=True)

    def start_container(self, name: str, run_cmd: Callable):
        self.logger.info("Starting existing container %s", name)
        run_cmd(["docker", "start", name], check=True, capture_output=True)

    def build_run_command(self, settings: TargetSettings) -> List[str]:
        cmd = [
            "docker",
            "run",
            "-d",
            "--name",
            settings.container_name,
            "-e",
            "POSTGRES_PASSWORD",
            "-e",
            f"POSTGRES_DB={settings.database}",
            "-p",
            f"{settings.port}:{CONTAINER_POSTGRES_PORT}",
        ]
        if settings.storage_path:
            cmd += ["-v", f"{settings.storage_path}:{CONTAINER_DATA_DIR}"]
        cmd.append(f"postgres:{settings.postgres_version}")
        return cmd

    def run_postgres_container(self, settings: TargetSettings, run_cmd: Callable):
        self.console.print(
            f"[blue]Creating container {settings.container_name} "
            f"(postgres:{settings.postgres_version}, port {settings.port})...[/blue]"
        )
        result = run_cmd(
            self.build_run_command(settings),
            check=False,
            capture_output=True,
            extra_env={"POSTGRES_PASSWORD": settings.password},
        )
        if result.returncode != 0:
            detail = (result.stderr or "").strip() or f"docker exited with {result.returncode}"
            raise MigratorError(
                actionable_error(
                    "container_start_failed",
                    name=settings.container_name,
                    port=settings.port,
                    detail=detail,
                )
            )

        container_id = (result.stdout or "").strip()
        self.logger.info("Container %s started (%s)", settings.container_name, container_id[:12])

    def wait_for_ready(
        self,
        name: str,
        password: str,
        run_cmd: Callable,
        max_retries: int = 30,
        interval_seconds: float = 2.0,
    ):
        self.console.print("[yellow]Waiting for database to be ready...[/yellow]")

        # TCP probe: the init-time server of the image only listens on the socket.
        cmd = [
            "docker",
            "exec",
            "-e",
            "PGPASSWORD",
            name,
            "psql",
            "-h",
            "127.0.0.1",
            "-U",
            LOCAL_SUPERUSER,
            "-d",
            MAINTENANCE_DATABASE,
            "-w",
            "-t",
            "-A",
            "-c",
            "SELECT 1;",
        ]

        for attempt in range(1, max_retries + 1):
            result = run_cmd(
                cmd,
                check=False,
                capture_output=True,
                extra_env={"PGPASSWORD": password},
            )
            if result.returncode == 0:
                self.console.print("[green]Database is ready.[/green]")
                return
            self.logger.debug("Readiness probe %s/%s failed.", attempt, max_retries)
            if attempt < max_retries:
                time.sleep(interval_seconds)

        raise MigratorError(actionable_error("database_not_ready", name=name))
