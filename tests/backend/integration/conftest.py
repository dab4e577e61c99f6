import importlib

import pytest

fastapi = pytest.importorskip("fastapi")
TestClient = pytest.importorskip("fastapi.testclient").TestClient


@pytest.fixture
def settings():
    config = importlib.import_module("langextract_api.core.config")
    return config.Settings(
        extract_delay_seconds=0.0,
        ocr_delay_seconds=0.0,
        extraction_timeout_seconds=5.0,
    )


@pytest.fixture
def app_modules(settings):
    """
    Load the app with a zero-delay mock backend and a clean job store.
    Returns modules for overriding dependencies in tests.
    """
    app_module = importlib.import_module("langextract_api.main")
    config_module = importlib.import_module("langextract_api.core.config")
    backend_module = importlib.import_module("langextract_api.infrastructure.extraction.backend")
    job_repository = importlib.import_module("langextract_api.infrastructure.store.job_repository")

    job_repository.reset()
    app = app_module.app
    backend = backend_module.MockExtractionBackend(settings)
    app.dependency_overrides[config_module.get_settings] = lambda: settings
    app.dependency_overrides[backend_module.get_backend] = lambda: backend

    yield {
        "app": app,
        "config": config_module,
        "backend": backend_module,
        "jobs": job_repository,
    }

    app.dependency_overrides.clear()
    job_repository.reset()


@pytest.fixture
def use_backend(app_modules):
    """Swap the extraction backend used by the routes."""

    def _use(backend):
        app_modules["app"].dependency_overrides[app_modules["backend"].get_backend] = lambda: backend
        return backend

    return _use


@pytest.fixture
def use_settings(app_modules):
    def _use(settings):
        app_modules["app"].dependency_overrides[app_modules["config"].get_settings] = lambda: settings
        return settings

    return _use


@pytest.fixture
def client(app_modules):
    return TestClient(app_modules["app"])
