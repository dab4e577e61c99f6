"""
Extraction backends.

A backend turns a buffered document into typed fields (`extract`) or plain text
(`recognize`). Real OCR/ML engines live outside this service and plug in by
registering a subclass of ExtractionBackend under a name.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from time import perf_counter
from typing import Any, Dict, Mapping, Optional, Type

from langextract_api.core.config import Settings, get_settings
from langextract_api.core.domain.extraction import Document, ExtractionResult, OcrResult
from langextract_api.core.domain.fields import (
    ContractDates,
    ContractFields,
    DocumentFields,
    InvoiceFields,
    LineItem,
    MedicalFields,
    Medication,
    Party,
    ReceiptFields,
    ReceiptItem,
    Vendor,
)
from langextract_api.core.errors import BackendError

logger = logging.getLogger("extraction.backend")

BACKEND_REGISTRY: Dict[str, Type["ExtractionBackend"]] = {}


def register_backend(name: str):
    """Decorator to register backend classes under a config name"""

    def decorator(cls: Type["ExtractionBackend"]) -> Type["ExtractionBackend"]:
        BACKEND_REGISTRY[name] = cls
        cls.name = name
        return cls

    return decorator


class ExtractionBackend(ABC):
    """Base class for all extraction backends"""

    name = "base"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    async def extract(
        self, document: Document, document_type: str, config: Mapping[str, Any]
    ) -> ExtractionResult:
        """Extract structured fields. Raise BackendError when the document cannot be processed."""

    @abstractmethod
    async def recognize(self, document: Document) -> OcrResult:
        """Return the plain text found in the document."""

    async def aclose(self) -> None:
        return None


SAMPLE_FIELDS: Dict[str, DocumentFields] = {
    "invoice": InvoiceFields(
        invoice_number="INV-2024-001234",
        date="2024-01-15",
        vendor=Vendor(
            name="Acme Corporation",
            address="123 Business Ave, Suite 100, San Francisco, CA 94102",
            email="billing@acmecorp.com",
        ),
        total=2547.50,
        currency="USD",
        items=[
            LineItem(description="Professional Services", quantity=40, unit_price=50.00, total=2000.00),
            LineItem(description="Software License", quantity=1, unit_price=299.00, total=299.00),
            LineItem(description="Support Package", quantity=1, unit_price=248.50, total=248.50),
        ],
        tax=254.75,
    ),
    "contract": ContractFields(
        parties=[
            Party(name="Acme Corporation", role="provider"),
            Party(name="Globex LLC", role="client"),
        ],
        dates=ContractDates(effective="2024-02-01", expiration="2025-01-31", signed="2024-01-20"),
        terms=[
            "Net 30 payment terms",
            "Either party may terminate with 60 days written notice",
            "Governed by the laws of the State of California",
        ],
    ),
    "medical": MedicalFields(
        patient_name="Jane Doe",
        diagnoses=["Type 2 diabetes mellitus", "Essential hypertension"],
        medications=[
            Medication(name="Metformin", dosage="500 mg", frequency="twice daily"),
            Medication(name="Lisinopril", dosage="10 mg", frequency="once daily"),
        ],
    ),
    "receipt": ReceiptFields(
        store="Corner Market",
        date="2024-03-02",
        items=[
            ReceiptItem(description="Coffee beans 1kg", price=18.99),
            ReceiptItem(description="Whole milk 2L", price=3.49),
            ReceiptItem(description="Sourdough loaf", price=5.25),
        ],
        total=27.73,
    ),
}

SAMPLE_CONFIDENCE: Dict[str, float] = {
    "invoice": 0.97,
    "contract": 0.93,
    "medical": 0.91,
    "receipt": 0.95,
}

SAMPLE_OCR_TEXT = "Sample OCR extracted text from the image..."
SAMPLE_OCR_CONFIDENCE = 0.95


@register_backend("mock")
class MockExtractionBackend(ExtractionBackend):
    """
    Deterministic stand-in for a real engine: waits for the configured delay and
    returns the canned payload of the requested document type.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        extract_delay: Optional[float] = None,
        ocr_delay: Optional[float] = None,
    ) -> None:
        super().__init__(settings)
        self.extract_delay = settings.extract_delay_seconds if extract_delay is None else extract_delay
        self.ocr_delay = settings.ocr_delay_seconds if ocr_delay is None else ocr_delay

    async def extract(
        self, document: Document, document_type: str, config: Mapping[str, Any]
    ) -> ExtractionResult:
        started = perf_counter()
        fields = SAMPLE_FIELDS.get(document_type)
        if fields is None:
            raise BackendError(f"No extractor available for document type '{document_type}'")
        await asyncio.sleep(self.extract_delay)
        return ExtractionResult(
            document_type=document_type,
            fields=fields,
            confidence=SAMPLE_CONFIDENCE[document_type],
            duration_seconds=perf_counter() - started,
        )

    async def recognize(self, document: Document) -> OcrResult:
        started = perf_counter()
        await asyncio.sleep(self.ocr_delay)
        return OcrResult(
            text=SAMPLE_OCR_TEXT,
            confidence=SAMPLE_OCR_CONFIDENCE,
            duration_seconds=perf_counter() - started,
        )


_backend: Optional[ExtractionBackend] = None


def init_backend(settings: Settings) -> ExtractionBackend:
    global _backend
    if _backend is not None:
        return _backend
    backend_cls = BACKEND_REGISTRY.get(settings.extraction_backend)
    if backend_cls is None:
        raise RuntimeError(
            f"Unknown extraction backend '{settings.extraction_backend}' "
            f"(available: {', '.join(sorted(BACKEND_REGISTRY))})"
        )
    _backend = backend_cls(settings)
    logger.info("extraction_backend_ready", extra={"backend": backend_cls.name})
    return _backend


async def close_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.aclose()
        _backend = None


def get_backend() -> ExtractionBackend:
    if _backend is None:
        # Handlers can run without the app lifespan, e.g. a TestClient used outside a context.
        return init_backend(get_settings())
    return _backend
