import logging
import os
import subprocess
import uuid
from typing import Any, Dict, List, Optional

from rich.console import Console

from .constants import DEFAULT_POSTGRES_VERSION, LOCAL_HOST, LOCAL_SUPERUSER, MANIFEST_FILE_NAME
from .errors import MigratorError, RunCancelled
from .errors_catalog import actionable_error
from .models import BackupRecord, ConnectionParams, DatabaseOutcome, TargetContainer, TargetSettings
from .services.backup import BackupService
from .services.command_runner import CommandRunner
from .services.database import DatabaseService
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.manifest import ManifestService
from .services.parameters import ParameterService
from .services.postgres_client import PostgresClientService
from .services.prompts import PromptService
from .services.provisioning import ProvisioningService
from .services.reporting import ReportService
from .services.selection import SelectionService
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("pgmigrator")


class PgMigrator:
    def __init__(
        self,
        remote_host: Optional[str] = None,
        remote_port: Optional[int] = None,
        remote_database: Optional[str] = None,
        remote_user: Optional[str] = None,
        remote_password: Optional[str] = None,
        container_name: Optional[str] = None,
        local_port: Optional[int] = None,
        local_database: Optional[str] = None,
        local_password: Optional[str] = None,
        storage_path: Optional[str] = None,
        postgres_version: str = DEFAULT_POSTGRES_VERSION,
        on_conflict: Optional[str] = None,
        databases: Optional[str] = None,
        backup_root: Optional[str] = None,
        ready_retries: int = 30,
        ready_interval: float = 2.0,
        command_timeout: Optional[float] = None,
        non_interactive: bool = False,
        prompt_service: Optional[PromptService] = None,
    ):
        self.remote_input = {
            "host": remote_host,
            "port": remote_port,
            "database": remote_database,
            "username": remote_user,
            "password": remote_password,
        }
        self.target_input = {
            "container_name": container_name,
            "port": local_port,
            "database": local_database,
            "password": local_password,
            "storage_path": storage_path,
            "postgres_version": postgres_version,
        }
        self.postgres_version = str(postgres_version or DEFAULT_POSTGRES_VERSION)
        self.on_conflict = on_conflict
        self.databases = databases
        self.backup_root = backup_root or os.getcwd()
        self.ready_retries = ready_retries
        self.ready_interval = ready_interval
        self.interactive = not non_interactive

        self.run_id = uuid.uuid4().hex[:10]
        self.remote: Optional[ConnectionParams] = None
        self.target_settings: Optional[TargetSettings] = None
        self.target: Optional[TargetContainer] = None
        self.backup_dir: Optional[str] = None
        self.outcomes: List[DatabaseOutcome] = []

        self.prompt_service = prompt_service or PromptService(console)
        self.command_runner = CommandRunner(logger=logger, default_timeout=command_timeout)
        self.validation_service = ValidationService()
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.manifest_service = ManifestService(logger=logger)
        self.docker_runtime_service = DockerRuntimeService(logger=logger, console=console)
        self.client_service = PostgresClientService(
            logger=logger,
            console=console,
            client_image=f"postgres:{self.postgres_version}",
        )
        self.parameter_service = ParameterService(
            logger=logger,
            console=console,
            prompt_service=self.prompt_service,
            validation_service=self.validation_service,
            interactive=self.interactive,
        )
        self.provisioning_service = ProvisioningService(
            logger=logger,
            console=console,
            docker_runtime_service=self.docker_runtime_service,
            prompt_service=self.prompt_service,
            interactive=self.interactive,
        )
        self.selection_service = SelectionService(
            logger=logger,
            console=console,
            prompt_service=self.prompt_service,
        )
        self.backup_service = BackupService(
            logger=logger,
            console=console,
            client_service=self.client_service,
            filesystem_service=self.filesystem_service,
        )
        self.database_service = DatabaseService(logger=logger, console=console)
        self.report_service = ReportService(console=console)

    def _build_manifest_metadata(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"client_mode": "native" if self.client_service.use_native else "container"}
        if self.remote:
            metadata["remote"] = {
                "host": self.remote.host,
                "port": self.remote.port,
                "database": self.remote.database,
                "username": self.remote.username,
            }
        if self.target_settings:
            metadata["target"] = {
                "container_name": self.target_settings.container_name,
                "port": self.target_settings.port,
                "database": self.target_settings.database,
                "storage_path": self.target_settings.storage_path,
                "image": f"postgres:{self.target_settings.postgres_version}",
            }
        return metadata

    def _run_step(self, name: str, callback, *args, **kwargs):
        self.manifest_service.step_started(name)
        try:
            result = callback(*args, **kwargs)
        except Exception as exc:
            self.manifest_service.step_finished(name, "failed", error=str(exc))
            raise
        self.manifest_service.step_finished(name, "success")
        return result

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def _local_params(self) -> ConnectionParams:
        return ConnectionParams(
            host=LOCAL_HOST,
            port=self.target_settings.port,
            database=self.target_settings.database,
            username=LOCAL_SUPERUSER,
            password=self.target_settings.password,
        )

    def _record_outcomes(self, outcomes: List[DatabaseOutcome]):
        for outcome in outcomes:
            self.outcomes.append(outcome)
            self.manifest_service.record_outcome(outcome)

    def validate_docker_environment(self):
        self.docker_runtime_service.validate_environment(self._run_cmd)

    def detect_client_tools(self) -> bool:
        return self.client_service.detect_native_tools()

    def collect_parameters(self):
        self.remote = self.parameter_service.collect_remote(**self.remote_input)
        self.target_settings = self.parameter_service.collect_target(**self.target_input)
        self.manifest_service.set_metadata(self._build_manifest_metadata())

    def provision_target(self) -> TargetContainer:
        self.target = self.provisioning_service.provision(
            self.target_settings,
            self._run_cmd,
            on_conflict=self.on_conflict,
            ready_retries=self.ready_retries,
            ready_interval=self.ready_interval,
        )
        return self.target

    def enumerate_databases(self) -> List[str]:
        self.client_service.check_compatibility(self.remote, self._run_cmd)
        databases = self.client_service.list_databases(self.remote, self._run_cmd)
        if not databases:
            raise MigratorError(
                actionable_error("no_databases", host=self.remote.host, port=self.remote.port)
            )
        logger.info("Found %s database(s) on %s", len(databases), self.remote.host)
        return databases

    def select_databases(self, databases: List[str]) -> List[str]:
        raw_selection = self.databases
        if raw_selection is None and not self.interactive:
            raise MigratorError(actionable_error("missing_parameter", label="Database selection"))
        return self.selection_service.select(databases, raw_selection)

    def prepare_backup_dir(self) -> str:
        self.backup_dir = self.filesystem_service.create_backup_dir(self.backup_root)
        self.manifest_service.attach(os.path.join(self.backup_dir, MANIFEST_FILE_NAME))
        console.print(f"[blue]Backups will be written to {self.backup_dir}[/blue]")
        return self.backup_dir

    def dump_databases(self, databases: List[str]) -> List[BackupRecord]:
        records, outcomes = self.backup_service.backup_databases(
            self.remote,
            databases,
            self.backup_dir,
            self._run_cmd,
        )
        self._record_outcomes(outcomes)
        for record in records:
            self.manifest_service.record_backup(record)
        return records

    def restore_databases(self, records: List[BackupRecord]) -> List[DatabaseOutcome]:
        outcomes = self.database_service.restore_backups(
            self.target,
            self.target_settings.password,
            records,
            self._run_cmd,
        )
        self._record_outcomes(outcomes)
        return outcomes

    def report(self):
        self.report_service.print_summary(
            backup_dir=self.backup_dir,
            target=self.target,
            local=self._local_params(),
            outcomes=self.outcomes,
        )

    def run(self) -> int:
        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            logger.info("Starting PgMigrator run %s...", self.run_id)
            self.manifest_service.start_run(self.run_id)

            self._run_step("validate_docker_environment", self.validate_docker_environment)
            self._run_step("detect_client_tools", self.detect_client_tools)
            self._run_step("collect_parameters", self.collect_parameters)
            self._run_step("provision_target", self.provision_target)

            databases = self._run_step("enumerate_databases", self.enumerate_databases)
            selected = self._run_step("select_databases", self.select_databases, databases)

            self.prepare_backup_dir()
            records = self._run_step("dump_databases", self.dump_databases, selected)
            if not records:
                raise MigratorError(actionable_error("no_successful_dumps"))

            outcomes = self._run_step("restore_databases", self.restore_databases, records)
            self.report()

            restored = sum(1 for outcome in outcomes if outcome.succeeded)
            if restored < len(selected):
                console.print(
                    f"[yellow]Migrated {restored} of {len(selected)} selected database(s).[/yellow]"
                )
                manifest_status = "partial"
            else:
                console.print("[bold green]Migration complete![/bold green]")
                manifest_status = "success"
            logger.info("Migration finished: %s of %s database(s) restored.", restored, len(selected))
            exit_code = 0
            return exit_code

        except RunCancelled as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            logger.info("Run cancelled by user")
            manifest_status = "cancelled"
            manifest_error = str(exc)
            exit_code = 0
            return exit_code
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            exit_code = 1
            return exit_code
        except MigratorError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            manifest_status = "failed"
            manifest_error = str(exc)
            exit_code = 1
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            manifest_status = "failed"
            manifest_error = str(exc)
            exit_code = 1
            return exit_code
        finally:
            self.manifest_service.finalize(manifest_status, error=manifest_error)
            if self.backup_dir:
                logger.info("Run manifest: %s", os.path.join(self.backup_dir, MANIFEST_FILE_NAME))
