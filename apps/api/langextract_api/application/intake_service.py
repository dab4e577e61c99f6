from pathlib import PurePath
from typing import List, Optional, Sequence

from fastapi import UploadFile

from langextract_api.core.domain.extraction import Document, IntakeEntry
from langextract_api.core.errors import ValidationError

CHUNK_SIZE = 1024 * 512

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "application/octet-stream",
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/webp",
    "image/gif",
    "image/bmp",
    "text/plain",
}


def _safe_name(upload: UploadFile, default: str) -> str:
    return PurePath(upload.filename or default).name or default


def _base_content_type(upload: UploadFile) -> str:
    # Drop parameters such as "; charset=utf-8".
    return (upload.content_type or "application/octet-stream").split(";")[0].strip().lower()


def _format_limit(max_bytes: int) -> str:
    megabytes, remainder = divmod(max_bytes, 1024 * 1024)
    return f"{megabytes}MB" if megabytes and not remainder else f"{max_bytes} bytes"


async def _read_limited(upload: UploadFile, max_bytes: int) -> bytes:
    buffer = bytearray()
    await upload.seek(0)
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise ValidationError(f"File exceeds the {_format_limit(max_bytes)} limit.")
    return bytes(buffer)


async def read_document(
    upload: Optional[UploadFile],
    *,
    max_bytes: int,
    field_name: str = "document",
    default_name: str = "document",
) -> Document:
    """
    Buffer a single uploaded file into memory.
    Raises ValidationError when the file is missing, empty, too large or of an unsupported type.
    """
    if upload is None:
        raise ValidationError(f"No file uploaded in field '{field_name}'.")
    content_type = _base_content_type(upload)
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(f"Unsupported file type: {content_type}")
    content = await _read_limited(upload, max_bytes)
    if not content:
        raise ValidationError("Uploaded file is empty.")
    return Document(content=content, filename=_safe_name(upload, default_name), content_type=content_type)


async def read_batch(
    uploads: Optional[Sequence[UploadFile]],
    *,
    max_files: int,
    max_bytes: int,
) -> List[IntakeEntry]:
    """
    Buffer every file of a batch. The request fails only on the file count; each
    file is validated on its own and a bad file becomes an entry with an error.
    """
    files = list(uploads or [])
    if not files:
        raise ValidationError("No files uploaded in field 'documents'.")
    if len(files) > max_files:
        raise ValidationError(f"Too many files: {len(files)} uploaded, at most {max_files} allowed.")

    entries: List[IntakeEntry] = []
    for index, upload in enumerate(files):
        filename = _safe_name(upload, f"document-{index + 1}")
        try:
            document = await read_document(upload, max_bytes=max_bytes, default_name=filename)
        except ValidationError as exc:
            entries.append(IntakeEntry(index=index, filename=filename, error=exc.message))
        else:
            entries.append(IntakeEntry(index=index, filename=filename, document=document))
        finally:
            await upload.close()
    return entries
