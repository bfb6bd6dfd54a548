import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    CONFLICT_CHOICES,
    DEFAULT_CONFIG_FILE,
    DEFAULT_POSTGRES_VERSION,
    LOCAL_PASSWORD_ENV,
    REMOTE_PASSWORD_ENV,
)
from .core import MigratorError, PgMigrator
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _resolve_secret(env_name, config, key):
    if env_name in os.environ:
        return os.environ[env_name]
    return config.get(key)


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--remote-host", required=False, help="Remote PostgreSQL host.")
@click.option("--remote-port", required=False, type=int, help="Remote PostgreSQL port (default: 5432).")
@click.option(
    "--remote-database",
    required=False,
    help="Database used for the initial remote connection (default: postgres).",
)
@click.option("--remote-user", required=False, help="Remote PostgreSQL user (default: postgres).")
@click.option(
    "--container-name",
    required=False,
    help="Name of the local PostgreSQL container (default: postgres_local).",
)
@click.option("--local-port", required=False, type=int, help="Host port published by the container.")
@click.option(
    "--local-database",
    required=False,
    help="Initial database created in the container (default: postgres).",
)
@click.option(
    "--storage-path",
    required=False,
    type=click.Path(file_okay=False),
    help="Host directory bound as the container data directory. Omit for ephemeral data.",
)
@click.option(
    "--postgres-version",
    required=False,
    default=None,
    help=f"PostgreSQL image tag for the target and client containers (default: {DEFAULT_POSTGRES_VERSION}).",
)
@click.option(
    "--on-conflict",
    required=False,
    type=click.Choice(CONFLICT_CHOICES),
    help="What to do when the container already exists.",
)
@click.option(
    "--databases",
    required=False,
    help="Selection to migrate: 'all' or comma-separated numbers from the listing.",
)
@click.option(
    "--backup-root",
    required=False,
    type=click.Path(file_okay=False),
    help="Directory where the timestamped backup folder is created (default: current directory).",
)
@click.option(
    "--ready-retries",
    required=False,
    type=int,
    default=None,
    help="Readiness probes before giving up on the container (default: 30).",
)
@click.option(
    "--ready-interval",
    required=False,
    type=float,
    default=None,
    help="Seconds between readiness probes (default: 2).",
)
@click.option(
    "--command-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for each external command. No timeout by default.",
)
@click.option(
    "--non-interactive",
    is_flag=True,
    default=None,
    help="Never prompt; fail when a required value is missing.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    config,
    remote_host,
    remote_port,
    remote_database,
    remote_user,
    container_name,
    local_port,
    local_database,
    storage_path,
    postgres_version,
    on_conflict,
    databases,
    backup_root,
    ready_retries,
    ready_interval,
    command_timeout,
    non_interactive,
    verbose,
    log_file,
):
    """Copy PostgreSQL databases from a remote server into a local Docker container.

    Passwords are read from the PGMIGRATOR_REMOTE_PASSWORD and
    PGMIGRATOR_LOCAL_PASSWORD environment variables or the config file, and
    are prompted for otherwise.
    """
    logger = logging.getLogger("pgmigrator")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except MigratorError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    on_conflict = _resolve_option(on_conflict, config_values, "on_conflict")

    databases = _resolve_option(databases, config_values, "databases")
    if databases is not None:
        databases = str(databases)

    ready_retries = int(_resolve_option(ready_retries, config_values, "ready_retries", default=30))
    ready_interval = float(_resolve_option(ready_interval, config_values, "ready_interval", default=2.0))
    command_timeout = _resolve_option(command_timeout, config_values, "command_timeout")
    if command_timeout is not None:
        command_timeout = float(command_timeout)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        migrator = PgMigrator(
            remote_host=_resolve_option(remote_host, config_values, "remote_host"),
            remote_port=_resolve_option(remote_port, config_values, "remote_port"),
            remote_database=_resolve_option(remote_database, config_values, "remote_database"),
            remote_user=_resolve_option(remote_user, config_values, "remote_user"),
            remote_password=_resolve_secret(REMOTE_PASSWORD_ENV, config_values, "remote_password"),
            container_name=_resolve_option(container_name, config_values, "container_name"),
            local_port=_resolve_option(local_port, config_values, "local_port"),
            local_database=_resolve_option(local_database, config_values, "local_database"),
            local_password=_resolve_secret(LOCAL_PASSWORD_ENV, config_values, "local_password"),
            storage_path=_resolve_option(storage_path, config_values, "storage_path"),
            postgres_version=str(
                _resolve_option(
                    postgres_version,
                    config_values,
                    "postgres_version",
                    default=DEFAULT_POSTGRES_VERSION,
                )
            ),
            on_conflict=on_conflict,
            databases=databases,
            backup_root=_resolve_option(backup_root, config_values, "backup_root"),
            ready_retries=ready_retries,
            ready_interval=ready_interval,
            command_timeout=command_timeout,
            non_interactive=bool(
                _resolve_option(non_interactive, config_values, "non_interactive", default=False)
            ),
        )
    except MigratorError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(migrator.run())


if __name__ == "__main__":
    main()
