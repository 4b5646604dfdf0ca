"""Thread-safe store for asynchronous conversion jobs.

Each job goes through: pending -> processing -> completed | failed. A job is
``completed`` whenever the orchestrator returned a result, whatever that
result's own status; ``failed`` means the worker itself crashed.

When ``persist_dir`` is set, finished jobs are written to disk as JSON so
results survive restarts.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from .config import SETTINGS
from .schema import ConversionResult

logger = logging.getLogger(__name__)

JobStatus = Literal["pending", "processing", "completed", "failed"]

# Finished jobs older than this are evicted from memory.
_IN_MEMORY_TTL_SECONDS = 3600


@dataclass
class _JobEntry:
    tenant_id: str | None = None
    filename: str | None = None
    status: JobStatus = "pending"
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)


class JobStore:
    """In-memory job registry with optional disk persistence."""

    def __init__(self, persist_dir: str | None = None) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, _JobEntry] = {}
        self._persist_dir: Path | None = Path(persist_dir) if persist_dir else None
        if self._persist_dir:
            self._persist_dir.mkdir(parents=True, exist_ok=True)

    def create_job(self, tenant_id: str | None = None, filename: str | None = None) -> str:
        job_id = uuid.uuid4().hex
        with self._lock:
            self._evict_old()
            self._jobs[job_id] = _JobEntry(tenant_id=tenant_id, filename=filename)
        return job_id

    def get_job(self, job_id: str, tenant_id: str | None = None) -> dict | None:
        """Return the job as a dict, or None if unknown or owned by another tenant.

        Jobs created with a tenant are only visible to that same tenant.
        """
        with self._lock:
            entry = self._jobs.get(job_id)
            data = asdict(entry) if entry is not None else None

        if data is None and self._persist_dir:
            disk_path = self._persist_dir / f"{job_id}.json"
            if disk_path.exists():
                try:
                    data = json.loads(disk_path.read_text())
                except (OSError, ValueError):
                    logger.warning("Failed to read persisted job %s", job_id)

        if data is None:
            return None
        owner = data.get("tenant_id")
        if owner is not None and owner != tenant_id:
            return None
        return data

    def set_processing(self, job_id: str) -> None:
        self._update(job_id, status="processing")

    def set_completed(self, job_id: str, result: ConversionResult) -> None:
        self._update(job_id, status="completed", result=result.model_dump(mode="json"))

    def set_failed(self, job_id: str, error: str) -> None:
        self._update(job_id, status="failed", error=error)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _update(self, job_id: str, **changes: Any) -> None:
        with self._lock:
            entry = self._jobs.get(job_id)
            if entry is None:
                logger.warning("Update for unknown job %s ignored", job_id)
                return
            for key, value in changes.items():
                setattr(entry, key, value)
            entry.updated_at = time.time()
            if entry.status in ("completed", "failed"):
                self._persist_to_disk(job_id, entry)

    def _persist_to_disk(self, job_id: str, entry: _JobEntry) -> None:
        """Write a finished job to disk (called under lock)."""
        if not self._persist_dir:
            return
        try:
            disk_path = self._persist_dir / f"{job_id}.json"
            disk_path.write_text(json.dumps(asdict(entry), default=str))
        except OSError:
            logger.warning("Failed to persist job %s to disk", job_id)

    def _evict_old(self) -> None:
        """Remove finished in-memory entries older than the TTL (called under lock)."""
        now = time.time()
        stale = [
            jid
            for jid, entry in self._jobs.items()
            if (now - entry.updated_at) > _IN_MEMORY_TTL_SECONDS
            and entry.status in ("completed", "failed")
        ]
        for jid in stale:
            del self._jobs[jid]


# Module-level singleton used by worker and API.
store = JobStore(persist_dir=SETTINGS.job_store_dir)
