from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from langextract_api.core.domain.fields import DocumentFields


class JobStatus(str, Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.succeeded, JobStatus.failed)


@dataclass
class Document:
    content: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    def ref(self) -> "DocumentRef":
        return DocumentRef(filename=self.filename, content_type=self.content_type, size=self.size)


@dataclass(frozen=True)
class DocumentRef:
    filename: str
    content_type: str
    size: int


@dataclass(frozen=True)
class ExtractionResult:
    document_type: str
    fields: DocumentFields
    confidence: float
    duration_seconds: float
    # Restricts the serialized payload when the caller asked for a subset of fields.
    selected_fields: Optional[Tuple[str, ...]] = None

    def extracted_data(self) -> Dict[str, Any]:
        include = set(self.selected_fields) if self.selected_fields else None
        return self.fields.model_dump(mode="json", include=include)

    @property
    def processing_time(self) -> str:
        return f"{self.duration_seconds:.1f}s"


@dataclass(frozen=True)
class OcrResult:
    text: str
    confidence: float
    duration_seconds: float


@dataclass
class ExtractionJob:
    job_id: str
    document: DocumentRef
    document_type: str
    config: Dict[str, Any]
    status: JobStatus
    created_at: datetime
    result: Optional[ExtractionResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class IntakeEntry:
    """One uploaded file of a batch: either a buffered document or the reason it was rejected."""

    index: int
    filename: str
    document: Optional[Document] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BatchItem:
    id: str
    filename: str
    success: bool
    job_id: Optional[str] = None
    result: Optional[ExtractionResult] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BatchResult:
    items: Tuple[BatchItem, ...]

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    fields: Tuple[str, ...]


class StepStatus(str, Enum):
    completed = "completed"
    failed = "failed"
    skipped = "skipped"


class WorkflowStatus(str, Enum):
    completed = "completed"
    failed = "failed"


@dataclass
class StepOutcome:
    name: str
    type: str
    status: StepStatus
    output: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class WorkflowRun:
    workflow_id: str
    name: Optional[str]
    status: WorkflowStatus
    steps: List[StepOutcome]
    output: Dict[str, Any]
    error: Optional[str] = None
