"""Actionable error catalog for PgMigrator."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "docker_unavailable": {
        "what": "Docker is not available: {detail}",
        "next": "Install Docker and make sure the daemon is running and reachable by this user.",
    },
    "missing_parameter": {
        "what": "Missing required value: {label}.",
        "next": "Pass it as an option, in the config file or via environment, "
        "or run without `--non-interactive`.",
    },
    "container_conflict": {
        "what": "Container `{name}` already exists.",
        "next": "Pass `--on-conflict replace|reuse|abort` to decide how to handle it.",
    },
    "container_start_failed": {
        "what": "Could not start container `{name}`: {detail}",
        "next": "Check that port {port} is free and that the storage path is not used "
        "by another container, then retry.",
    },
    "database_not_ready": {
        "what": "Container `{name}` did not accept connections in time.",
        "next": "Inspect `docker logs {name}` or raise `--ready-retries`.",
    },
    "remote_connection_failed": {
        "what": "Could not list databases on {host}:{port}: {detail}",
        "next": "Verify host, port and credentials, and that pg_hba.conf allows this client.",
    },
    "no_databases": {
        "what": "No user databases found on {host}:{port}.",
        "next": "Connect with a role that can see the databases you want to migrate.",
    },
    "invalid_selection": {
        "what": "Invalid selection `{selection}`.",
        "next": "Enter `all` or comma-separated numbers between 1 and {count}.",
    },
    "no_successful_dumps": {
        "what": "No database could be dumped.",
        "next": "Review the errors above, check the remote role permissions and run again.",
    },
}


def actionable_error(code: str, **kwargs) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
