from fastapi import APIRouter

from langextract_api.core.errors import JobNotFound
from langextract_api.infrastructure.store import job_repository
from langextract_api.interfaces.api.schemas import JobStatusResponse

router = APIRouter()


@router.get("/api/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str) -> JobStatusResponse:
    job = job_repository.get_job(job_id)
    if job is None:
        raise JobNotFound(f"Job {job_id} not found.")

    result = job.result
    return JobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        document_type=job.document_type,
        filename=job.document.filename,
        content_type=job.document.content_type,
        size=job.document.size,
        created_at=job.created_at,
        completed_at=job.completed_at,
        extracted_data=result.extracted_data() if result else None,
        confidence=result.confidence if result else None,
        processing_time=result.processing_time if result else None,
        error=job.error,
        error_kind=job.error_kind,
    )
