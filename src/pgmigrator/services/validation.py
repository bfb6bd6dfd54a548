"""Input validation helpers for PgMigrator."""

import os
import re
from typing import Optional

from pgmigrator.errors import MigratorError


class ValidationService:
    """Validates connection and container parameters before anything runs."""

    CONTAINER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")

    def validate_port(self, value, label: str) -> int:
        try:
            port = int(value)
        except (TypeError, ValueError) as exc:
            raise MigratorError(f"{label} must be a number, got '{value}'.") from exc

        if port < 1 or port > 65535:
            raise MigratorError(f"{label} must be between 1 and 65535, got {port}.")
        return port

    def validate_required(self, value: Optional[str], label: str) -> str:
        clean_value = (value or "").strip()
        if not clean_value:
            raise MigratorError(f"{label} must not be empty.")
        return clean_value

    def validate_container_name(self, name: Optional[str]) -> str:
        clean_name = self.validate_required(name, "Container name")
        if not self.CONTAINER_NAME_PATTERN.match(clean_name):
            raise MigratorError(
                f"Invalid container name '{clean_name}'. Use letters, digits, '_', '.' or '-', "
                "starting with a letter or digit."
            )
        return clean_name

    def validate_storage_path(self, path: Optional[str]) -> Optional[str]:
        if path is None or not str(path).strip():
            return None

        resolved = os.path.abspath(os.path.expanduser(str(path).strip()))
        if os.path.exists(resolved) and not os.path.isdir(resolved):
            raise MigratorError(f"Storage path must be a directory: {resolved}")
        return resolved
