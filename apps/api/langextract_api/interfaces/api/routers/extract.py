import asyncio
import contextlib
import logging
from typing import Awaitable, List, Optional, TypeVar

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from langextract_api.application import extraction_service, intake_service
from langextract_api.core.config import Settings, get_settings
from langextract_api.core.domain.extraction import BatchItem, JobStatus
from langextract_api.core.errors import error_for_kind
from langextract_api.infrastructure.extraction.backend import ExtractionBackend, get_backend
from langextract_api.infrastructure.templates import DEFAULT_DOCUMENT_TYPE
from langextract_api.interfaces.api.errors import failure_response
from langextract_api.interfaces.api.schemas import (
    BatchItemResponse,
    BatchResponse,
    ExtractResponse,
    OcrResponse,
)

router = APIRouter()
logger = logging.getLogger("api")

T = TypeVar("T")

DISCONNECT_POLL_SECONDS = 0.25
CLIENT_CLOSED_REQUEST = 499


class ClientDisconnected(Exception):
    pass


async def _until_disconnect(request: Request, work: Awaitable[T]) -> T:
    """
    Await `work` while watching the client connection; a disconnect cancels the
    in-flight backend call and raises ClientDisconnected.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("client_disconnected", extra={"path": request.url.path})
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                raise ClientDisconnected
    finally:
        if not task.done():
            task.cancel()


def _item_out(item: BatchItem) -> BatchItemResponse:
    return BatchItemResponse(
        id=item.id,
        filename=item.filename,
        success=item.success,
        job_id=item.job_id,
        extracted_data=item.result.extracted_data() if item.result else None,
        confidence=item.result.confidence if item.result else None,
        error=item.error,
    )


@router.post("/api/extract", response_model=ExtractResponse)
async def extract_document(
    request: Request,
    document: Optional[UploadFile] = File(default=None),
    document_type: str = Form(default=DEFAULT_DOCUMENT_TYPE, alias="type"),
    config: Optional[str] = Form(default=None),
    backend: ExtractionBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    upload = await intake_service.read_document(document, max_bytes=settings.max_upload_bytes)
    options = extraction_service.parse_config(config)
    try:
        job = await _until_disconnect(
            request,
            extraction_service.submit(upload, document_type, options, backend=backend, settings=settings),
        )
    except ClientDisconnected:
        return failure_response(CLIENT_CLOSED_REQUEST, "Client disconnected before extraction finished.")

    if job.status is not JobStatus.succeeded or job.result is None:
        exc = error_for_kind(job.error_kind, job.error or "Extraction failed.")
        return failure_response(exc.status_code, exc.message, job_id=job.job_id)

    return ExtractResponse(
        job_id=job.job_id,
        document_type=job.result.document_type,
        extracted_data=job.result.extracted_data(),
        confidence=job.result.confidence,
        processing_time=job.result.processing_time,
    )


@router.post("/api/extract/batch", response_model=BatchResponse)
async def extract_batch(
    request: Request,
    documents: Optional[List[UploadFile]] = File(default=None),
    document_type: str = Form(default=DEFAULT_DOCUMENT_TYPE, alias="type"),
    config: Optional[str] = Form(default=None),
    backend: ExtractionBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    entries = await intake_service.read_batch(
        documents,
        max_files=settings.max_batch_files,
        max_bytes=settings.max_upload_bytes,
    )
    options = extraction_service.parse_config(config)
    try:
        result = await _until_disconnect(
            request,
            extraction_service.submit_batch(entries, document_type, options, backend=backend, settings=settings),
        )
    except ClientDisconnected:
        return failure_response(CLIENT_CLOSED_REQUEST, "Client disconnected before the batch finished.")

    return BatchResponse(count=result.count, results=[_item_out(item) for item in result.items])


@router.post("/api/ocr", response_model=OcrResponse)
async def ocr_image(
    request: Request,
    image: Optional[UploadFile] = File(default=None),
    backend: ExtractionBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    upload = await intake_service.read_document(
        image, max_bytes=settings.max_upload_bytes, field_name="image", default_name="image"
    )
    try:
        result = await _until_disconnect(
            request, extraction_service.recognize(upload, backend=backend, settings=settings)
        )
    except ClientDisconnected:
        return failure_response(CLIENT_CLOSED_REQUEST, "Client disconnected before OCR finished.")

    return OcrResponse(text=result.text, confidence=result.confidence)
