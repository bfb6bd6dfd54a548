"""Subprocess execution service for PgMigrator."""

import os
import subprocess
from contextlib import ExitStack
from typing import Any, Dict, List, Mapping, Optional

from pgmigrator.errors import MigratorError


class CommandRunner:
    """Runs external commands with consistent error handling.

    Secrets are handed to the child process through ``extra_env`` only, which is
    merged into a fresh copy of the environment for that single invocation.
    """

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    @staticmethod
    def build_env(extra_env: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
        if not extra_env:
            return None
        env = dict(os.environ)
        env.update(extra_env)
        return env

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        extra_env: Optional[Mapping[str, str]] = None,
        stdin_path: Optional[str] = None,
        stdout_path: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        with ExitStack() as stack:
            kwargs: Dict[str, Any] = {
                "text": True,
                "timeout": effective_timeout,
                "env": self.build_env(extra_env),
            }
            try:
                if stdin_path:
                    kwargs["stdin"] = stack.enter_context(open(stdin_path, "rb"))
                if stdout_path:
                    kwargs["stdout"] = stack.enter_context(open(stdout_path, "wb"))
            except OSError as exc:
                raise MigratorError(f"Could not open file for command {cmd_str}: {exc}") from exc

            if stdout_path:
                kwargs["stderr"] = subprocess.PIPE if capture_output else None
            else:
                kwargs["capture_output"] = capture_output

            try:
                result = subprocess.run(cmd, **kwargs)
            except FileNotFoundError as exc:
                raise MigratorError(
                    f"Required command not found: {cmd[0]}. Please install it and try again."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise MigratorError(
                    f"Command timed out after {effective_timeout}s: {cmd_str}"
                ) from exc
            except Exception as exc:
                raise MigratorError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise MigratorError(message)

        self.logger.debug(message)
        return result
