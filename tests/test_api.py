"""End-to-end route tests against the FastAPI app with in-memory collaborators."""

import pytest
from fastapi.testclient import TestClient

from src.config import settings
from src.main import app

REFUND_POLICY = (
    "Refunds are issued to the original payment method within five business days. "
    "Duplicate charges are reversed automatically once the bank confirms them."
).encode("utf-8")


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path}/api.db")
    with TestClient(app) as test_client:
        yield test_client


def upload(client, filename="Refund Policy.txt", data=REFUND_POLICY, content_type="text/plain"):
    return client.post("/knowledge-base/upload", files={"file": (filename, data, content_type)})


# ========== Service routes ==========

def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"] == {
        "database": "connected",
        "llm_client": "available (mock)",
        "vector_store": "available (memory, 0 vectors)",
    }


def test_root(client):
    body = client.get("/").json()
    assert body["service"] == settings.app_name
    assert "knowledge_base" in body["modules"]


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "ticket-4711"})
    assert response.headers["X-Correlation-ID"] == "ticket-4711"


# ========== Knowledge base routes ==========

def test_upload_list_get_and_delete(client):
    created = upload(client)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "indexed"
    assert body["chunk_count"] == 1
    assert body["filename"] == "Refund Policy.txt"
    document_id = body["document_id"]

    listed = client.get("/knowledge-base").json()
    assert [d["id"] for d in listed] == [document_id]
    assert listed[0]["status"] == "indexed"

    assert client.get(f"/knowledge-base/{document_id}").json()["filename"] == "Refund Policy.txt"

    deleted = client.delete(f"/knowledge-base/{document_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "document_id": document_id, "vectors_deleted": 1}

    missing = client.get(f"/knowledge-base/{document_id}")
    assert missing.status_code == 404
    assert missing.json()["error_type"] == "ResourceNotFoundException"


def test_upload_duplicate_is_conflict(client):
    assert upload(client).status_code == 201

    response = upload(client, filename="Refund_Policy.txt")

    assert response.status_code == 409
    assert response.json()["error_type"] == "DocumentConflictException"


def test_upload_empty_file(client):
    response = upload(client, data=b"")
    assert response.status_code == 400


def test_upload_unsupported_type(client):
    response = upload(client, filename="archive.zip", data=b"PK\x03\x04", content_type="application/zip")

    assert response.status_code == 400
    assert response.json()["error_type"] == "ExtractionException"


def test_upload_too_large(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)

    response = upload(client)

    assert response.status_code == 413


def test_upload_exactly_at_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", len(REFUND_POLICY))

    assert upload(client).status_code == 201


def test_retrieve(client):
    upload(client)

    response = client.post(
        "/knowledge-base/retrieve",
        json={"query": REFUND_POLICY.decode("utf-8"), "top_k": 3}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["source_documents"] == ["Refund Policy.txt"]
    assert body["relevant_chunks"][0]["score"] == pytest.approx(1.0)


def test_retrieve_validates_top_k(client):
    response = client.post("/knowledge-base/retrieve", json={"query": "refund", "top_k": 0})
    assert response.status_code == 422


def test_retrieve_without_vector_store(client):
    client.app.state.vector_store = None

    response = client.post("/knowledge-base/retrieve", json={"query": "refund"})

    assert response.status_code == 503


def test_reconcile(client):
    upload(client)

    body = client.post("/knowledge-base/reconcile").json()

    assert body["consistent"] is True
    assert body["repaired"] is False
    assert body["documents_checked"] == 1
    assert body["vectors_checked"] == 1


# ========== Triage routes ==========

def test_analyze(client):
    response = client.post(
        "/triage/analyze",
        json={"message": "The checkout page crashes whenever I enter my card."}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["category"] == "Technical Issue"
    assert body["urgency_score"] == 7
    assert body["fallback"] is False


def test_analyze_rejects_short_message(client):
    assert client.post("/triage/analyze", json={"message": "help"}).status_code == 422


def test_summarize(client):
    response = client.post(
        "/triage/summarize",
        json={"messages": [
            {"sender": "customer", "message": "My invoice is wrong."},
            {"sender": "agent", "message": "I have corrected it."}
        ]}
    )

    assert response.status_code == 200
    assert response.json()["summary"].startswith("Mock:")


def test_draft_cites_uploaded_document(client):
    upload(client)

    response = client.post(
        "/triage/draft",
        json={
            "context_message": "When will I get my refund?",
            "conversation": [{"sender": "customer", "message": "When will I get my refund?"}]
        }
    )

    assert response.status_code == 200
    body = response.json()
    assert body["sources"] == ["Refund Policy.txt"]
    assert body["context_used"] == 1
