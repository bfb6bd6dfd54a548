"""Domain errors for PgMigrator."""


class MigratorError(RuntimeError):
    """Raised when the migration cannot continue safely."""


class SelectionError(MigratorError):
    """Raised when the database selection cannot be parsed."""


class RunCancelled(MigratorError):
    """Raised when the user chooses to stop the run."""
