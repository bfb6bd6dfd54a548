"""Shared constants for PgMigrator."""

DIR_MODE = 0o755
DUMP_FILE_MODE = 0o600

DEFAULT_CONFIG_FILE = ".pgmigrator.yml"
DEFAULT_POSTGRES_VERSION = "16"
DEFAULT_REMOTE_PORT = 5432
DEFAULT_REMOTE_DATABASE = "postgres"
DEFAULT_REMOTE_USER = "postgres"
DEFAULT_CONTAINER_NAME = "postgres_local"
DEFAULT_LOCAL_PORT = 5432
DEFAULT_LOCAL_DATABASE = "postgres"

LOCAL_HOST = "localhost"
LOCAL_SUPERUSER = "postgres"
MAINTENANCE_DATABASE = "postgres"
CONTAINER_POSTGRES_PORT = 5432
CONTAINER_DATA_DIR = "/var/lib/postgresql/data"

EXCLUDED_DATABASES = ("postgres", "template0", "template1")
CONFLICT_CHOICES = ("replace", "reuse", "abort")

BACKUP_DIR_PREFIX = "pg_backup_"
DUMP_FILE_SUFFIX = ".sql"
MANIFEST_FILE_NAME = "migration-manifest.json"

REMOTE_PASSWORD_ENV = "PGMIGRATOR_REMOTE_PASSWORD"
LOCAL_PASSWORD_ENV = "PGMIGRATOR_LOCAL_PASSWORD"

CONTAINER_ABSENT = "absent"
CONTAINER_EXISTING = "existing"
CONTAINER_CREATED = "created"
