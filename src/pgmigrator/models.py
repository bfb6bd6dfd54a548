"""Shared domain models for PgMigrator."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ConnectionParams:
    """Connection details for one side of the migration."""

    host: str
    port: int
    database: str
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class TargetSettings:
    """Validated inputs used to provision the local container."""

    container_name: str
    port: int
    database: str
    password: str = field(repr=False)
    storage_path: Optional[str] = None
    postgres_version: str = "16"


@dataclass(frozen=True)
class TargetContainer:
    name: str
    port: int
    storage_path: Optional[str]
    state: str


@dataclass(frozen=True)
class BackupRecord:
    database: str
    path: str
    size_bytes: int


@dataclass(frozen=True)
class DatabaseOutcome:
    """Result of dumping or restoring a single database."""

    database: str
    phase: str
    status: str
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"
