"""Configuration loader for PgMigrator."""

from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from pgmigrator.constants import CONFLICT_CHOICES
from pgmigrator.errors import MigratorError


def _is_text(value) -> bool:
    return isinstance(value, str)


def _is_port(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 65535


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _is_positive_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _is_flag(value) -> bool:
    return isinstance(value, bool)


def _is_version(value) -> bool:
    # YAML reads `postgres_version: 16` as an int and `15.4` as a float.
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _is_selection(value) -> bool:
    # `databases: 2` is an int, `databases: 1,2` stays a string.
    return isinstance(value, (str, int)) and not isinstance(value, bool)


class ConfigLoader:
    """Loads and type-checks the YAML file that supplies CLI defaults."""

    RULES: Dict[str, Callable[[Any], bool]] = {
        "remote_host": _is_text,
        "remote_port": _is_port,
        "remote_database": _is_text,
        "remote_user": _is_text,
        "remote_password": _is_text,
        "container_name": _is_text,
        "local_port": _is_port,
        "local_database": _is_text,
        "local_password": _is_text,
        "storage_path": _is_text,
        "postgres_version": _is_version,
        "on_conflict": lambda value: value in CONFLICT_CHOICES,
        "databases": _is_selection,
        "backup_root": _is_text,
        "ready_retries": _is_positive_int,
        "ready_interval": _is_positive_number,
        "command_timeout": _is_positive_number,
        "non_interactive": _is_flag,
        "verbose": _is_flag,
        "log_file": _is_text,
    }

    EXPECTED = {
        _is_port: "a port between 1 and 65535",
        _is_positive_int: "a whole number of at least 1",
        _is_positive_number: "a number greater than 0",
        _is_flag: "true or false",
        _is_version: "a version such as 16",
        _is_selection: "'all' or comma-separated numbers",
        _is_text: "a string",
    }

    SUPPORTED_KEYS = frozenset(RULES)

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise MigratorError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise MigratorError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise MigratorError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            raise MigratorError(f"Unknown configuration keys: {', '.join(unknown)}")

        # null means "not set", the same as leaving the key out.
        values = {key: value for key, value in parsed.items() if value is not None}
        self.validate(values, config_path)
        return values

    def validate(self, values: Dict[str, Any], config_path: str):
        for key, value in values.items():
            rule = self.RULES[key]
            if rule(value):
                continue
            if key == "on_conflict":
                expected = f"one of: {', '.join(CONFLICT_CHOICES)}"
            else:
                expected = self.EXPECTED[rule]
            raise MigratorError(
                f"Invalid value {value!r} for '{key}' in {config_path}: expected {expected}."
            )
