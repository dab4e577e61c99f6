from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from langextract_api.core.domain.extraction import JobStatus, StepStatus, WorkflowStatus
from langextract_api.infrastructure.templates import DEFAULT_DOCUMENT_TYPE

MAX_WORKFLOW_STEPS = 20


class ErrorResponse(BaseModel):
    # Extra keys such as job_id ride along in the envelope.
    model_config = ConfigDict(extra="allow")

    success: Literal[False] = False
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str


class ExtractResponse(BaseModel):
    success: bool = True
    job_id: str
    document_type: str
    extracted_data: Dict[str, Any]
    confidence: float = Field(ge=0.0, le=1.0)
    processing_time: str


class BatchItemResponse(BaseModel):
    id: str
    filename: str
    success: bool
    job_id: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    error: Optional[str] = None


class BatchResponse(BaseModel):
    success: bool = True
    count: int
    results: List[BatchItemResponse]


class OcrResponse(BaseModel):
    success: bool = True
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


class TemplateOut(BaseModel):
    id: str
    name: str
    fields: List[str]


class TemplatesResponse(BaseModel):
    templates: List[TemplateOut]


class JobStatusResponse(BaseModel):
    success: bool = True
    job_id: str
    status: JobStatus
    document_type: str
    filename: str
    content_type: str
    size: int
    created_at: datetime
    completed_at: Optional[datetime] = None
    extracted_data: Optional[Dict[str, Any]] = None
    confidence: Optional[float] = None
    processing_time: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


# -------- Workflow --------


class ExtractStep(BaseModel):
    type: Literal["extract"]
    name: Optional[str] = Field(default=None, max_length=100)
    document_type: str = DEFAULT_DOCUMENT_TYPE
    config: Dict[str, Any] = Field(default_factory=dict)
    filename: str = Field(default="workflow-document.txt", min_length=1, max_length=255)
    # Inline text treated as the document body; a placeholder is used when omitted.
    content: Optional[str] = None


class TransformStep(BaseModel):
    type: Literal["transform"]
    name: Optional[str] = Field(default=None, max_length=100)
    operation: Literal["select", "drop", "rename"]
    fields: List[str] = Field(default_factory=list)
    mapping: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def ensure_operation_arguments(self) -> "TransformStep":
        if self.operation in ("select", "drop") and not self.fields:
            raise ValueError(f"'{self.operation}' requires a non-empty fields list.")
        if self.operation == "rename" and not self.mapping:
            raise ValueError("'rename' requires a non-empty mapping.")
        return self


class ValidateStep(BaseModel):
    type: Literal["validate"]
    name: Optional[str] = Field(default=None, max_length=100)
    required_fields: List[str] = Field(default_factory=list)
    min_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def ensure_criteria(self) -> "ValidateStep":
        if not self.required_fields and self.min_confidence is None:
            raise ValueError("Provide required_fields or min_confidence.")
        return self


WorkflowStep = Annotated[Union[ExtractStep, TransformStep, ValidateStep], Field(discriminator="type")]


class WorkflowDefinition(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    steps: List[WorkflowStep] = Field(..., min_length=1, max_length=MAX_WORKFLOW_STEPS)


class WorkflowExecuteRequest(BaseModel):
    # Validated by the workflow service so malformed definitions get a service-level error message.
    workflow: Any = None


class StepOutcomeOut(BaseModel):
    name: str
    type: str
    status: StepStatus
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class WorkflowResponse(BaseModel):
    success: bool
    workflow_id: str
    name: Optional[str] = None
    status: WorkflowStatus
    output: Dict[str, Any] = Field(default_factory=dict)
    steps: List[StepOutcomeOut] = Field(default_factory=list)
    error: Optional[str] = None
