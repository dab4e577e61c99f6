import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Tuple

# Fixed by the public batch contract, not configurable.
MAX_BATCH_FILES = 10


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: Tuple[str, ...] = ("*",)
    log_level: str = "info"
    extraction_backend: str = "mock"
    max_upload_mb: int = 25
    extraction_timeout_seconds: float = 30.0
    batch_concurrency: int = 4
    extract_delay_seconds: float = 1.0
    ocr_delay_seconds: float = 0.8
    job_history_limit: int = 500

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def max_batch_files(self) -> int:
        return MAX_BATCH_FILES


def _positive(name: str, value: float) -> float:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.
    Raises ValueError on malformed or out-of-range numbers so a bad deploy fails at startup.
    """
    env = os.environ if environ is None else environ
    origins = tuple(o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip())
    return Settings(
        host=env.get("HOST", "0.0.0.0"),
        port=int(_positive("PORT", int(env.get("PORT", "3000")))),
        cors_origins=origins or ("*",),
        log_level=env.get("LOG_LEVEL", "info").lower(),
        extraction_backend=env.get("EXTRACTION_BACKEND", "mock"),
        max_upload_mb=int(_positive("MAX_UPLOAD_MB", int(env.get("MAX_UPLOAD_MB", "25")))),
        extraction_timeout_seconds=_positive(
            "EXTRACTION_TIMEOUT_SECONDS", float(env.get("EXTRACTION_TIMEOUT_SECONDS", "30"))
        ),
        batch_concurrency=int(_positive("BATCH_CONCURRENCY", int(env.get("BATCH_CONCURRENCY", "4")))),
        # Delays may be zero (tests, local demos) but never negative.
        extract_delay_seconds=max(0.0, float(env.get("EXTRACT_DELAY_SECONDS", "1.0"))),
        ocr_delay_seconds=max(0.0, float(env.get("OCR_DELAY_SECONDS", "0.8"))),
        job_history_limit=int(_positive("JOB_HISTORY_LIMIT", int(env.get("JOB_HISTORY_LIMIT", "500")))),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
