import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from langextract_api.core.domain.extraction import DocumentRef, ExtractionJob, ExtractionResult, JobStatus
from langextract_api.core.errors import InvalidJobTransition

DEFAULT_HISTORY_LIMIT = 500

_ALLOWED_TRANSITIONS = {
    JobStatus.pending: {JobStatus.running, JobStatus.failed},
    JobStatus.running: {JobStatus.succeeded, JobStatus.failed},
    JobStatus.succeeded: set(),
    JobStatus.failed: set(),
}

_lock = threading.Lock()
_jobs: "OrderedDict[str, ExtractionJob]" = OrderedDict()
_history_limit = DEFAULT_HISTORY_LIMIT


def configure(history_limit: int) -> None:
    global _history_limit
    with _lock:
        _history_limit = history_limit
        _evict_locked()


def reset() -> None:
    with _lock:
        _jobs.clear()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _evict_locked() -> None:
    # Oldest terminal jobs go first; in-flight jobs are never dropped.
    overflow = len(_jobs) - _history_limit
    if overflow <= 0:
        return
    for job_id in [jid for jid, job in _jobs.items() if job.status.is_terminal][:overflow]:
        del _jobs[job_id]


def create_job(document: DocumentRef, document_type: str, config: Optional[Dict[str, Any]] = None) -> ExtractionJob:
    job = ExtractionJob(
        job_id=str(uuid.uuid4()),
        document=document,
        document_type=document_type,
        config=dict(config or {}),
        status=JobStatus.pending,
        created_at=_now(),
    )
    with _lock:
        _jobs[job.job_id] = job
        _evict_locked()
    return job


def update_job(
    job_id: str,
    status: JobStatus,
    *,
    result: Optional[ExtractionResult] = None,
    error: Optional[str] = None,
    error_kind: Optional[str] = None,
) -> ExtractionJob:
    """
    Move a job forward. Terminal jobs are immutable and backward moves raise InvalidJobTransition.
    """
    with _lock:
        job = _jobs.get(job_id)
        if job is None:
            raise InvalidJobTransition(f"Unknown job {job_id}")
        if status not in _ALLOWED_TRANSITIONS[job.status]:
            raise InvalidJobTransition(
                f"Job {job_id} cannot move from {job.status.value} to {status.value}"
            )
        job.status = status
        if result is not None:
            job.result = result
        if error is not None:
            job.error = error
            job.error_kind = error_kind or "internal"
        if status.is_terminal:
            job.completed_at = _now()
            _evict_locked()
        return job


def get_job(job_id: str) -> Optional[ExtractionJob]:
    with _lock:
        return _jobs.get(job_id)


def count() -> int:
    with _lock:
        return len(_jobs)
