"""Migration manifest written next to the dumps."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _seconds_between(started: Optional[str], finished: Optional[str]) -> Optional[float]:
    if not started or not finished:
        return None
    return (datetime.fromisoformat(finished) - datetime.fromisoformat(started)).total_seconds()


class ManifestService:
    """Records one migration run as JSON.

    Nothing touches the disk until ``attach`` points the manifest at a file in
    the backup directory. From then on every update rewrites it atomically.
    Only non-secret values ever reach the document.
    """

    def __init__(self, logger, manifest_file: Optional[str] = None):
        self.logger = logger
        self.manifest_file = manifest_file
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "metadata": {},
            "steps": [],
            "databases": {},
            "summary": {},
            "error": None,
        }

    def start_run(self, run_id: str):
        self.manifest.update(run_id=run_id, status="running", started_at=_utc_now())
        self.write()

    def attach(self, manifest_file: str):
        self.manifest_file = manifest_file
        self.write()

    def set_metadata(self, metadata: Dict[str, Any]):
        self.manifest["metadata"].update(metadata)
        self.write()

    def step_started(self, step_name: str):
        self.manifest["steps"].append(
            {"name": step_name, "status": "running", "started_at": _utc_now(), "finished_at": None}
        )
        self.write()

    def step_finished(self, step_name: str, status: str, error: Optional[str] = None):
        open_steps = [s for s in self.manifest["steps"] if s["name"] == step_name and s["status"] == "running"]
        if open_steps:
            step = open_steps[-1]
            step["status"] = status
            step["finished_at"] = _utc_now()
            step["duration_seconds"] = _seconds_between(step["started_at"], step["finished_at"])
            if error:
                step["error"] = error
        self.write()

    def _database_entry(self, database: str) -> Dict[str, Any]:
        return self.manifest["databases"].setdefault(database, {})

    def record_outcome(self, outcome):
        self._database_entry(outcome.database)[outcome.phase] = {
            "status": outcome.status,
            "detail": outcome.detail,
        }
        self.write()

    def record_backup(self, record):
        entry = self._database_entry(record.database)
        entry["file"] = record.path
        entry["size_bytes"] = record.size_bytes
        self.write()

    def _summarize(self) -> Dict[str, int]:
        entries = self.manifest["databases"].values()
        return {
            "selected": len(self.manifest["databases"]),
            "dumped": sum(1 for e in entries if e.get("dump", {}).get("status") == "success"),
            "restored": sum(1 for e in entries if e.get("restore", {}).get("status") == "success"),
            "bytes_dumped": sum(e.get("size_bytes", 0) for e in entries),
        }

    def finalize(self, status: str, error: Optional[str] = None):
        finished_at = _utc_now()
        self.manifest.update(
            status=status,
            finished_at=finished_at,
            duration_seconds=_seconds_between(self.manifest["started_at"], finished_at),
            summary=self._summarize(),
            error=error,
        )
        self.write()

    def write(self):
        if not self.manifest_file:
            return

        directory = os.path.dirname(self.manifest_file) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=".manifest-", suffix=".json", dir=directory)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass
