from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from langextract_api.application import workflow_service
from langextract_api.core.config import Settings, get_settings
from langextract_api.core.domain.extraction import WorkflowRun, WorkflowStatus
from langextract_api.infrastructure.extraction.backend import ExtractionBackend, get_backend
from langextract_api.interfaces.api.schemas import (
    StepOutcomeOut,
    WorkflowExecuteRequest,
    WorkflowResponse,
)

router = APIRouter()


def _to_response(run: WorkflowRun) -> WorkflowResponse:
    return WorkflowResponse(
        success=run.status is WorkflowStatus.completed,
        workflow_id=run.workflow_id,
        name=run.name,
        status=run.status,
        output=run.output,
        steps=[
            StepOutcomeOut(name=s.name, type=s.type, status=s.status, output=s.output, error=s.error)
            for s in run.steps
        ],
        error=run.error,
    )


@router.post("/api/workflow/execute", response_model=WorkflowResponse)
async def execute_workflow(
    payload: WorkflowExecuteRequest,
    backend: ExtractionBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    definition = workflow_service.parse_definition(payload.workflow)
    run = await workflow_service.execute(definition, backend=backend, settings=settings)
    response = _to_response(run)
    if run.status is WorkflowStatus.failed:
        # Failed runs still carry the completed step outputs.
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=response.model_dump(mode="json"),
        )
    return response
