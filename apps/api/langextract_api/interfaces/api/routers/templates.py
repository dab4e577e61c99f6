from fastapi import APIRouter

from langextract_api.infrastructure import templates
from langextract_api.interfaces.api.schemas import TemplateOut, TemplatesResponse

router = APIRouter()


@router.get("/api/templates", response_model=TemplatesResponse)
def list_templates() -> TemplatesResponse:
    return TemplatesResponse(
        templates=[
            TemplateOut(id=t.id, name=t.name, fields=list(t.fields))
            for t in templates.list_templates()
        ]
    )
