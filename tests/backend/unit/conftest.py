import pytest

from langextract_api.core.config import Settings
from langextract_api.infrastructure.store import job_repository


@pytest.fixture(autouse=True)
def _clean_job_store():
    job_repository.reset()
    job_repository.configure(job_repository.DEFAULT_HISTORY_LIMIT)
    yield
    job_repository.reset()


@pytest.fixture
def settings():
    return Settings(extract_delay_seconds=0.0, ocr_delay_seconds=0.0, extraction_timeout_seconds=5.0)
