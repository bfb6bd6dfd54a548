"""Filesystem helpers for PgMigrator."""

import hashlib
import logging
import os
import sys
from datetime import datetime
from typing import Optional, Set

from rich.console import Console

from pgmigrator.constants import BACKUP_DIR_PREFIX, DIR_MODE, DUMP_FILE_SUFFIX


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def create_backup_dir(self, root: str, now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        path = os.path.abspath(os.path.join(root, f"{BACKUP_DIR_PREFIX}{stamp}"))
        os.makedirs(path, exist_ok=True)
        self.set_permissions(path, DIR_MODE)
        self.logger.info("Backup directory: %s", path)
        return path

    @staticmethod
    def dump_file_name(database: str, taken: Optional[Set[str]] = None) -> str:
        """Returns a file name for ``database`` that stays inside the backup dir.

        Names that had to be rewritten get a digest of the original name, so
        ``a/b`` and ``a_b`` never share a file. ``taken`` collects the names
        handed out in one run, compared case-insensitively, and a counter is
        appended on a clash.
        """
        safe_name = database.replace("/", "_").replace(os.sep, "_")
        if safe_name in {"", ".", ".."}:
            safe_name = f"_{safe_name}"
        if safe_name != database:
            digest = hashlib.sha256(database.encode("utf-8")).hexdigest()[:8]
            safe_name = f"{safe_name}-{digest}"

        if taken is not None:
            candidate = safe_name
            counter = 1
            while candidate.lower() in taken:
                counter += 1
                candidate = f"{safe_name}-{counter}"
            taken.add(candidate.lower())
            safe_name = candidate
        return f"{safe_name}{DUMP_FILE_SUFFIX}"

    def remove_file(self, path: str):
        if not os.path.exists(path):
            return
        try:
            os.remove(path)
            self.logger.debug("Removed file: %s", path)
        except OSError as exc:
            message = f"Warning: Could not remove {path}: {exc}"
            self.console.print(f"[yellow]{message}[/yellow]")
            self.logger.warning(message)
