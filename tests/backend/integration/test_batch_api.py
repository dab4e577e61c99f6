import asyncio

import pytest

from langextract_api.core.config import Settings
from langextract_api.core.errors import BackendError
from langextract_api.infrastructure.extraction.backend import MockExtractionBackend


def _files(count: int, prefix: str = "doc"):
    return [
        ("documents", (f"{prefix}-{i}.pdf", f"%PDF-1.4 {i}".encode(), "application/pdf"))
        for i in range(count)
    ]


class ReverseDelayBackend(MockExtractionBackend):
    """Finishes later uploads first: document i sleeps (10 - i) ticks."""

    async def extract(self, document, document_type, config):
        index = int(document.content.decode().split()[-1])
        await asyncio.sleep((10 - index) * 0.01)
        return await super().extract(document, document_type, config)


class PickyBackend(MockExtractionBackend):
    async def extract(self, document, document_type, config):
        if document.filename == "bad.pdf":
            raise BackendError("Unreadable scan")
        return await super().extract(document, document_type, config)


@pytest.mark.parametrize("count", [1, 3, 10])
def test_batch_count_matches_uploads(client, count):
    resp = client.post("/api/extract/batch", files=_files(count), data={"type": "invoice"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["count"] == count
    assert len(data["results"]) == count
    assert [r["id"] for r in data["results"]] == [f"doc-{i + 1}" for i in range(count)]
    assert [r["filename"] for r in data["results"]] == [f"doc-{i}.pdf" for i in range(count)]
    assert all(r["success"] and r["extracted_data"] for r in data["results"])


def test_batch_rejects_more_than_ten_files(client):
    resp = client.post("/api/extract/batch", files=_files(11))
    assert resp.status_code == 400
    data = resp.json()
    assert data["success"] is False
    assert "results" not in data


def test_batch_without_files_fails(client):
    resp = client.post("/api/extract/batch", data={"type": "invoice"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_batch_preserves_input_order(client, use_backend):
    use_backend(ReverseDelayBackend(Settings(extract_delay_seconds=0.0, batch_concurrency=10)))
    resp = client.post("/api/extract/batch", files=_files(6))
    assert resp.status_code == 200
    names = [r["filename"] for r in resp.json()["results"]]
    assert names == [f"doc-{i}.pdf" for i in range(6)]


def test_empty_file_fails_only_its_item(client):
    files = _files(2)
    files.insert(1, ("documents", ("empty.pdf", b"", "application/pdf")))
    resp = client.post("/api/extract/batch", files=files)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["count"] == 3
    assert [r["success"] for r in data["results"]] == [True, False, True]
    failed = data["results"][1]
    assert failed["filename"] == "empty.pdf"
    assert failed["extracted_data"] is None
    assert failed["error"] == "Uploaded file is empty."


def test_backend_failure_is_isolated_per_item(client, use_backend):
    use_backend(PickyBackend(Settings(extract_delay_seconds=0.0)))
    files = [
        ("documents", ("good.pdf", b"%PDF ok", "application/pdf")),
        ("documents", ("bad.pdf", b"%PDF broken", "application/pdf")),
        ("documents", ("fine.pdf", b"%PDF ok", "application/pdf")),
    ]
    resp = client.post("/api/extract/batch", files=files, data={"type": "receipt"})
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [r["success"] for r in results] == [True, False, True]
    assert results[1]["error"] == "Unreadable scan"
    assert results[0]["extracted_data"]["store"] == "Corner Market"

    failed_job = client.get(f"/api/jobs/{results[1]['job_id']}").json()
    assert failed_job["status"] == "failed"


def test_batch_rejects_unknown_document_type(client):
    resp = client.post("/api/extract/batch", files=_files(2), data={"type": "unknown"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False
