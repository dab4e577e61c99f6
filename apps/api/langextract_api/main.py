import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from langextract_api.core.config import get_settings
from langextract_api.infrastructure.extraction import backend as extraction_backend
from langextract_api.infrastructure.store import job_repository
from langextract_api.interfaces.api.errors import register_exception_handlers
from langextract_api.interfaces.api.routers import extract, jobs, templates, workflow
from langextract_api.interfaces.api.schemas import HealthResponse

logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    extraction_backend.init_backend(settings)
    job_repository.configure(settings.job_history_limit)
    logger.info("LangExtract API running on http://localhost:%s", settings.port)
    logger.info("Health: http://localhost:%s/api/health", settings.port)
    try:
        yield
    finally:
        await extraction_backend.close_backend()


app = FastAPI(title="LangExtract API", version="0.1.0", lifespan=lifespan)

_origins = list(get_settings().cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    # Browsers reject credentials on a wildcard origin.
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@app.get("/api/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=utc_timestamp())


app.include_router(extract.router)
app.include_router(templates.router)
app.include_router(workflow.router)
app.include_router(jobs.router)


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    run()
