import logging
import uuid
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as SchemaValidationError

from langextract_api.application import extraction_service
from langextract_api.core.config import Settings
from langextract_api.core.domain.extraction import (
    Document,
    JobStatus,
    StepOutcome,
    StepStatus,
    WorkflowRun,
    WorkflowStatus,
)
from langextract_api.core.errors import ExtractionServiceError, ValidationError, error_for_kind
from langextract_api.infrastructure.extraction.backend import ExtractionBackend
from langextract_api.interfaces.api.schemas import (
    ExtractStep,
    TransformStep,
    ValidateStep,
    WorkflowDefinition,
    WorkflowStep,
)

logger = logging.getLogger("workflow")

PLACEHOLDER_CONTENT = "Workflow document without inline content."


@dataclass
class _RunContext:
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: Optional[float] = None
    document_type: Optional[str] = None
    extracted: bool = False

    def output(self) -> Dict[str, Any]:
        return {
            "extracted": self.extracted,
            "confidence": self.confidence,
            "document_type": self.document_type,
            "data": dict(self.data),
        }


def _describe(exc: SchemaValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_definition(raw: Any) -> WorkflowDefinition:
    if raw is None or raw == {} or raw == [] or raw == "":
        raise ValidationError("A workflow definition is required.")
    if not isinstance(raw, dict):
        raise ValidationError("workflow must be a JSON object with a 'steps' list.")
    try:
        return WorkflowDefinition.model_validate(raw)
    except SchemaValidationError as exc:
        raise ValidationError(f"Invalid workflow definition: {_describe(exc)}") from exc


async def _run_extract(
    step: ExtractStep, ctx: _RunContext, backend: ExtractionBackend, settings: Settings
) -> Dict[str, Any]:
    document = Document(
        content=(step.content or PLACEHOLDER_CONTENT).encode("utf-8"),
        filename=step.filename,
        content_type="text/plain",
    )
    job = await extraction_service.submit(
        document, step.document_type, step.config, backend=backend, settings=settings
    )
    if job.status is not JobStatus.succeeded or job.result is None:
        raise error_for_kind(job.error_kind, job.error or "Extraction failed.")

    extracted = job.result.extracted_data()
    ctx.data.update(extracted)
    ctx.confidence = job.result.confidence
    ctx.document_type = job.result.document_type
    ctx.extracted = True
    return {
        "job_id": job.job_id,
        "document_type": job.result.document_type,
        "confidence": job.result.confidence,
        "fields": list(extracted),
    }


def _missing(ctx: _RunContext, names: List[str]) -> List[str]:
    return [name for name in names if name not in ctx.data]


def _run_transform(step: TransformStep, ctx: _RunContext) -> Dict[str, Any]:
    if step.operation == "rename":
        missing = _missing(ctx, list(step.mapping))
    else:
        missing = _missing(ctx, step.fields)
    if missing:
        raise ValidationError(f"Fields not present: {', '.join(missing)}")

    if step.operation == "select":
        ctx.data = {name: ctx.data[name] for name in step.fields}
    elif step.operation == "drop":
        ctx.data = {k: v for k, v in ctx.data.items() if k not in step.fields}
    else:
        renamed = [step.mapping.get(k, k) for k in ctx.data]
        clashes = sorted({name for name in renamed if renamed.count(name) > 1})
        if clashes:
            raise ValidationError(f"Rename would overwrite fields: {', '.join(clashes)}")
        ctx.data = dict(zip(renamed, ctx.data.values()))
    return {"operation": step.operation, "fields": list(ctx.data)}


def _run_validate(step: ValidateStep, ctx: _RunContext) -> Dict[str, Any]:
    absent = [name for name in step.required_fields if ctx.data.get(name) is None]
    if absent:
        raise ValidationError(f"Missing required fields: {', '.join(absent)}")
    if step.min_confidence is not None:
        if ctx.confidence is None:
            raise ValidationError("No extraction confidence to check; add an extract step first.")
        if ctx.confidence < step.min_confidence:
            raise ValidationError(
                f"Confidence {ctx.confidence} is below the required {step.min_confidence}."
            )
    return {"checked": list(step.required_fields), "confidence": ctx.confidence}


async def _run_step(
    step: WorkflowStep, ctx: _RunContext, backend: ExtractionBackend, settings: Settings
) -> Dict[str, Any]:
    if isinstance(step, ExtractStep):
        return await _run_extract(step, ctx, backend, settings)
    if isinstance(step, TransformStep):
        return _run_transform(step, ctx)
    return _run_validate(step, ctx)


async def execute(
    definition: WorkflowDefinition, *, backend: ExtractionBackend, settings: Settings
) -> WorkflowRun:
    """
    Run the steps in declared order. The first failing step fails the run; later
    steps are reported as skipped and completed outputs are kept.
    """
    workflow_id = f"wf-{uuid.uuid4().hex}"
    ctx = _RunContext()
    outcomes: List[StepOutcome] = []
    status = WorkflowStatus.completed
    error: Optional[str] = None
    started = perf_counter()

    for index, step in enumerate(definition.steps):
        name = step.name or f"{step.type}-{index + 1}"
        if status is WorkflowStatus.failed:
            outcomes.append(StepOutcome(name=name, type=step.type, status=StepStatus.skipped))
            continue
        try:
            output = await _run_step(step, ctx, backend, settings)
        except ExtractionServiceError as exc:
            status = WorkflowStatus.failed
            error = f"Step '{name}' failed: {exc.message}"
            outcomes.append(StepOutcome(name=name, type=step.type, status=StepStatus.failed, error=exc.message))
            logger.warning(
                "workflow_step_failed",
                extra={"workflow_id": workflow_id, "step": name, "error_kind": exc.kind},
            )
        else:
            outcomes.append(StepOutcome(name=name, type=step.type, status=StepStatus.completed, output=output))

    logger.info(
        "workflow_run_finished",
        extra={
            "workflow_id": workflow_id,
            "status": status.value,
            "steps": len(outcomes),
            "elapsed_ms": round((perf_counter() - started) * 1000, 2),
        },
    )
    return WorkflowRun(
        workflow_id=workflow_id,
        name=definition.name,
        status=status,
        steps=outcomes,
        output=ctx.output(),
        error=error,
    )
