import dataclasses
import json

from langextract_api.core.config import Settings
from langextract_api.core.errors import BackendError
from langextract_api.infrastructure.extraction.backend import MockExtractionBackend


def _pdf(name: str = "invoice.pdf", content: bytes = b"%PDF-1.4 sample"):
    return {"document": (name, content, "application/pdf")}


class FailingBackend(MockExtractionBackend):
    async def extract(self, document, document_type, config):
        raise BackendError("Engine rejected the document")


class ExplodingBackend(MockExtractionBackend):
    async def extract(self, document, document_type, config):
        raise RuntimeError("boom")


class OverconfidentBackend(MockExtractionBackend):
    async def extract(self, document, document_type, config):
        result = await super().extract(document, document_type, config)
        return dataclasses.replace(result, confidence=1.7)


def test_extract_returns_invoice_payload(client):
    resp = client.post("/api/extract", files=_pdf(), data={"type": "invoice"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["document_type"] == "invoice"
    assert 0.0 <= data["confidence"] <= 1.0
    assert data["extracted_data"]["invoice_number"] == "INV-2024-001234"
    assert data["extracted_data"]["vendor"]["name"] == "Acme Corporation"
    assert len(data["extracted_data"]["items"]) == 3
    assert data["processing_time"].endswith("s")
    assert data["job_id"]


def test_extract_defaults_to_invoice(client):
    resp = client.post("/api/extract", files=_pdf())
    assert resp.status_code == 200
    assert resp.json()["document_type"] == "invoice"


def test_extract_uses_payload_of_requested_type(client):
    resp = client.post("/api/extract", files=_pdf("chart.png", b"\x89PNG data"), data={"type": "medical"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["document_type"] == "medical"
    assert data["extracted_data"]["patient_name"] == "Jane Doe"
    assert "invoice_number" not in data["extracted_data"]


def test_extract_without_file_fails(client):
    resp = client.post("/api/extract", data={"type": "invoice"})
    assert resp.status_code == 400
    data = resp.json()
    assert data["success"] is False
    assert "document" in data["error"]


def test_extract_rejects_empty_file(client):
    resp = client.post("/api/extract", files=_pdf(content=b""))
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Uploaded file is empty."}


def test_extract_rejects_unsupported_content_type(client):
    resp = client.post("/api/extract", files={"document": ("archive.zip", b"PK..", "application/zip")})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_extract_rejects_oversized_file(client, use_settings):
    use_settings(Settings(extract_delay_seconds=0.0, max_upload_mb=1))
    resp = client.post("/api/extract", files=_pdf(content=b"x" * (1024 * 1024 + 1)))
    assert resp.status_code == 400
    assert "1MB" in resp.json()["error"]


def test_extract_rejects_unknown_document_type(client):
    resp = client.post("/api/extract", files=_pdf(), data={"type": "passport"})
    assert resp.status_code == 400
    assert "passport" in resp.json()["error"]


def test_extract_config_selects_fields(client):
    resp = client.post(
        "/api/extract",
        files=_pdf(),
        data={"type": "invoice", "config": json.dumps({"fields": ["total", "currency"]})},
    )
    assert resp.status_code == 200
    assert resp.json()["extracted_data"] == {"total": 2547.5, "currency": "USD"}


def test_extract_rejects_malformed_config(client):
    resp = client.post("/api/extract", files=_pdf(), data={"config": "{not json"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = client.post("/api/extract", files=_pdf(), data={"config": json.dumps({"fields": ["nope"]})})
    assert resp.status_code == 400
    assert "nope" in resp.json()["error"]


def test_backend_failure_is_structured_and_tracked(client, use_backend):
    use_backend(FailingBackend(Settings(extract_delay_seconds=0.0)))
    resp = client.post("/api/extract", files=_pdf())
    assert resp.status_code == 500
    data = resp.json()
    assert data["success"] is False
    assert data["error"] == "Engine rejected the document"

    job = client.get(f"/api/jobs/{data['job_id']}").json()
    assert job["status"] == "failed"
    assert job["error_kind"] == "backend"
    assert job["completed_at"] is not None


def test_unexpected_backend_exception_does_not_escape(client, use_backend):
    use_backend(ExplodingBackend(Settings(extract_delay_seconds=0.0)))
    resp = client.post("/api/extract", files=_pdf())
    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert "boom" in resp.json()["error"]


def test_out_of_range_confidence_is_a_backend_failure(client, use_backend):
    use_backend(OverconfidentBackend(Settings(extract_delay_seconds=0.0)))
    resp = client.post("/api/extract", files=_pdf())
    assert resp.status_code == 500
    assert resp.json()["success"] is False


def test_extract_times_out(client, use_backend, use_settings):
    settings = use_settings(Settings(extraction_timeout_seconds=0.05))
    use_backend(MockExtractionBackend(settings, extract_delay=2.0))
    resp = client.post("/api/extract", files=_pdf())
    assert resp.status_code == 504
    data = resp.json()
    assert data["success"] is False
    assert "timed out" in data["error"]
    assert client.get(f"/api/jobs/{data['job_id']}").json()["error_kind"] == "timeout"


def test_job_status_after_success(client):
    job_id = client.post("/api/extract", files=_pdf("scan.pdf")).json()["job_id"]
    resp = client.get(f"/api/jobs/{job_id}")
    assert resp.status_code == 200
    job = resp.json()
    assert job["status"] == "succeeded"
    assert job["filename"] == "scan.pdf"
    assert job["size"] == len(b"%PDF-1.4 sample")
    assert job["extracted_data"]["invoice_number"] == "INV-2024-001234"


def test_unknown_job_is_404(client):
    resp = client.get("/api/jobs/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_ocr_returns_text(client):
    resp = client.post("/api/ocr", files={"image": ("page.png", b"\x89PNG data", "image/png")})
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["text"]
    assert 0.0 <= data["confidence"] <= 1.0


def test_ocr_without_image_fails(client):
    resp = client.post("/api/ocr")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_ocr_times_out(client, use_backend, use_settings):
    settings = use_settings(Settings(extraction_timeout_seconds=0.05))
    use_backend(MockExtractionBackend(settings, ocr_delay=2.0))
    resp = client.post("/api/ocr", files={"image": ("page.png", b"\x89PNG data", "image/png")})
    assert resp.status_code == 504
    assert resp.json()["success"] is False


def test_unknown_route_is_structured(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_each_request_gets_its_own_job(client):
    ids = {client.post("/api/extract", files=_pdf()).json()["job_id"] for _ in range(5)}
    assert len(ids) == 5
