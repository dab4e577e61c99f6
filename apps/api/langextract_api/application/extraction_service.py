import asyncio
import dataclasses
import json
import logging
from time import perf_counter
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from langextract_api.core.config import Settings
from langextract_api.core.domain.extraction import (
    BatchItem,
    BatchResult,
    Document,
    ExtractionJob,
    IntakeEntry,
    JobStatus,
    OcrResult,
)
from langextract_api.core.domain.fields import field_names
from langextract_api.core.errors import (
    BackendError,
    ExtractionServiceError,
    ExtractionTimeout,
    ValidationError,
)
from langextract_api.infrastructure import templates
from langextract_api.infrastructure.extraction.backend import ExtractionBackend
from langextract_api.infrastructure.store import job_repository

logger = logging.getLogger("extraction")


def parse_config(raw: Optional[str]) -> Dict[str, Any]:
    """Decode the `config` form field, which arrives as a JSON object string."""
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"config is not valid JSON: {exc.msg}") from exc
    if not isinstance(value, dict):
        raise ValidationError("config must be a JSON object.")
    return value


def validate_request(
    document_type: str, config: Optional[Mapping[str, Any]]
) -> Optional[Tuple[str, ...]]:
    """
    Check the document type against the template catalogue and the known config options.
    Returns the requested field subset, if any.
    """
    if not templates.is_supported(document_type):
        supported = ", ".join(t.id for t in templates.list_templates())
        raise ValidationError(f"Unsupported document type '{document_type}' (supported: {supported}).")
    if config is None:
        return None
    if not isinstance(config, Mapping):
        raise ValidationError("config must be a JSON object.")

    selected = config.get("fields")
    if selected is None:
        return None
    if not isinstance(selected, list) or not selected or not all(isinstance(f, str) for f in selected):
        raise ValidationError("config.fields must be a non-empty list of field names.")
    known = field_names(document_type)
    unknown = [f for f in selected if f not in known]
    if unknown:
        raise ValidationError(f"Unknown fields for {document_type}: {', '.join(unknown)}")
    return tuple(selected)


def _fail(job: ExtractionJob, message: str, kind: str) -> ExtractionJob:
    failed = job_repository.update_job(job.job_id, JobStatus.failed, error=message, error_kind=kind)
    logger.warning(
        "extraction_job_failed",
        extra={"job_id": job.job_id, "document_type": job.document_type, "error_kind": kind},
    )
    return failed


async def _drive(
    job: ExtractionJob,
    document: Document,
    backend: ExtractionBackend,
    settings: Settings,
    selected: Optional[Tuple[str, ...]],
) -> ExtractionJob:
    """
    Run one pending job to a terminal state. Only task cancellation propagates;
    every backend failure is recorded on the job.
    """
    started = perf_counter()
    job_repository.update_job(job.job_id, JobStatus.running)
    timeout = settings.extraction_timeout_seconds
    try:
        result = await asyncio.wait_for(
            backend.extract(document, job.document_type, job.config), timeout=timeout
        )
    except ExtractionServiceError as exc:
        return _fail(job, exc.message, exc.kind)
    except asyncio.TimeoutError:
        return _fail(job, f"Extraction timed out after {timeout:g}s.", ExtractionTimeout.kind)
    except asyncio.CancelledError:
        _fail(job, "Extraction cancelled.", "cancelled")
        raise
    except Exception as exc:
        logger.exception("extraction_backend_error", extra={"job_id": job.job_id})
        return _fail(job, f"Unexpected extraction error: {exc}", "internal")

    if not 0.0 <= result.confidence <= 1.0:
        return _fail(job, f"Backend reported confidence {result.confidence} outside [0, 1].", BackendError.kind)
    if selected:
        result = dataclasses.replace(result, selected_fields=selected)

    done = job_repository.update_job(job.job_id, JobStatus.succeeded, result=result)
    logger.info(
        "extraction_job_succeeded",
        extra={
            "job_id": job.job_id,
            "document_type": job.document_type,
            "confidence": result.confidence,
            "elapsed_ms": round((perf_counter() - started) * 1000, 2),
        },
    )
    return done


async def submit(
    document: Document,
    document_type: str,
    config: Optional[Mapping[str, Any]],
    *,
    backend: ExtractionBackend,
    settings: Settings,
) -> ExtractionJob:
    """
    Create a job for the document and wait for the backend. The returned job is
    terminal; it stays available from the job store for status polling.
    """
    selected = validate_request(document_type, config)
    job = job_repository.create_job(document.ref(), document_type, dict(config or {}))
    logger.info(
        "extraction_job_created",
        extra={"job_id": job.job_id, "document_type": document_type, "size": document.size},
    )
    return await _drive(job, document, backend, settings, selected)


def _batch_item(item_id: str, filename: str, job: ExtractionJob) -> BatchItem:
    if job.status is JobStatus.succeeded:
        return BatchItem(id=item_id, filename=filename, success=True, job_id=job.job_id, result=job.result)
    return BatchItem(id=item_id, filename=filename, success=False, job_id=job.job_id, error=job.error)


async def submit_batch(
    entries: Sequence[IntakeEntry],
    document_type: str,
    config: Optional[Mapping[str, Any]],
    *,
    backend: ExtractionBackend,
    settings: Settings,
) -> BatchResult:
    """
    Extract every document of a batch concurrently and return the outcomes in input order.
    A failing document only fails its own item.
    """
    selected = validate_request(document_type, config)
    semaphore = asyncio.Semaphore(settings.batch_concurrency)
    started = perf_counter()

    async def run_entry(entry: IntakeEntry) -> BatchItem:
        item_id = f"doc-{entry.index + 1}"
        if entry.document is None:
            return BatchItem(id=item_id, filename=entry.filename, success=False, error=entry.error)
        job = job_repository.create_job(entry.document.ref(), document_type, dict(config or {}))
        try:
            async with semaphore:
                job = await _drive(job, entry.document, backend, settings, selected)
        except asyncio.CancelledError:
            # Jobs still queued on the semaphore never reached _drive.
            if job.status is JobStatus.pending:
                _fail(job, "Extraction cancelled.", "cancelled")
            raise
        return _batch_item(item_id, entry.filename, job)

    items = await asyncio.gather(*(run_entry(entry) for entry in entries))
    result = BatchResult(items=tuple(items))
    logger.info(
        "extraction_batch_completed",
        extra={
            "count": result.count,
            "failed": sum(1 for item in result.items if not item.success),
            "document_type": document_type,
            "elapsed_ms": round((perf_counter() - started) * 1000, 2),
        },
    )
    return result


async def recognize(document: Document, *, backend: ExtractionBackend, settings: Settings) -> OcrResult:
    timeout = settings.extraction_timeout_seconds
    try:
        result = await asyncio.wait_for(backend.recognize(document), timeout=timeout)
    except ExtractionServiceError:
        raise
    except asyncio.TimeoutError as exc:
        raise ExtractionTimeout(f"OCR timed out after {timeout:g}s.") from exc
    except Exception as exc:
        logger.exception("ocr_backend_error", extra={"size": document.size})
        raise BackendError(f"OCR failed: {exc}") from exc
    if not 0.0 <= result.confidence <= 1.0:
        raise BackendError(f"Backend reported confidence {result.confidence} outside [0, 1].")
    return result
