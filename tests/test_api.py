"""Tests for the HTTP surface."""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from config import Config
from ingest.processor import DocumentPreparer
from main import create_app


@pytest.fixture
def app(service):
    return create_app(Config(DEDUPE_PEPPER="p", CRON_SECRET="cron-secret"), service=service)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def payload(fast_kdf):
    return DocumentPreparer(kdf_params=fast_kdf).prepare("# Shared doc").to_payload()


class TestCreate:
    def test_plaintext_flow(self, client):
        response = client.post("/api/documents", json={"markdown": "# Hi"})
        assert response.status_code == 201
        data = response.json()
        assert data["readUrl"] == f"/r/{data['documentId']}"
        assert len(data["password"]) == 24
        assert "deduplicated" not in data

    def test_encrypted_flow_dedupes(self, client, payload):
        first = client.post("/api/documents", json=payload)
        second = client.post("/api/documents", json=payload)
        assert first.status_code == second.status_code == 201
        assert "password" not in first.json()
        assert second.json()["documentId"] == first.json()["documentId"]
        assert second.json()["deduplicated"] is True

    def test_empty_markdown(self, client):
        response = client.post("/api/documents", json={"markdown": "  "})
        assert response.status_code == 400
        assert response.json() == {"error": "Markdown content cannot be empty.", "code": "empty"}

    def test_too_large(self, client, payload):
        payload["contentLength"] = 300 * 1024
        response = client.post("/api/documents", json=payload)
        assert response.status_code == 400
        assert response.json()["code"] == "too_large"

    def test_declared_length_must_match_ciphertext(self, client, payload):
        payload["contentLength"] += 1
        response = client.post("/api/documents", json=payload)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_format"

    @pytest.mark.parametrize("flag", ["false", "true", 1, None])
    def test_content_addressed_must_be_boolean(self, client, store, flag):
        response = client.post("/api/documents", json={"markdown": "# Hi", "contentAddressed": flag})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_format"
        assert len(store) == 0

    def test_content_addressed_flag(self, client):
        first = client.post("/api/documents", json={"markdown": "# Hi", "contentAddressed": True}).json()
        second = client.post("/api/documents", json={"markdown": "# Hi", "contentAddressed": True}).json()
        assert second["documentId"] == first["documentId"]
        assert second["password"] == first["password"]
        assert second["deduplicated"] is True

    def test_password_with_content_addressed_rejected(self, client):
        response = client.post(
            "/api/documents",
            json={"markdown": "# Hi", "contentAddressed": True, "password": "mine"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_format"

    @pytest.mark.parametrize("content", [b"not json", b"[1, 2]"])
    def test_invalid_body(self, client, content):
        response = client.post(
            "/api/documents", content=content, headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_format"

    def test_allocation_exhausted(self, client, store):
        store.exists = AsyncMock(return_value=True)
        response = client.post("/api/documents", json={"markdown": "# Hi"})
        assert response.status_code == 500
        assert response.json()["code"] == "server_error"


class TestRead:
    def test_get_document(self, client, payload):
        document_id = client.post("/api/documents", json=payload).json()["documentId"]
        response = client.get(f"/api/documents/{document_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["ciphertextB64"] == payload["ciphertextB64"]
        assert data["kdf"]["algorithm"] == "pbkdf2-sha256"
        assert "dedupe_tag" not in data and "contentHash" not in data

    def test_get_missing(self, client):
        response = client.get("/api/documents/doesnotexist")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


class TestDecrypt:
    def test_success(self, client):
        created = client.post("/api/documents", json={"markdown": "# Secret"}).json()
        response = client.post(
            f"/api/documents/{created['documentId']}/decrypt",
            json={"password": created["password"]},
        )
        assert response.status_code == 200
        assert response.json() == {"markdown": "# Secret"}

    def test_wrong_password(self, client):
        created = client.post("/api/documents", json={"markdown": "# Secret"}).json()
        response = client.post(
            f"/api/documents/{created['documentId']}/decrypt", json={"password": "nope"}
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid password or data.", "code": "invalid_password"}

    def test_missing_password(self, client):
        created = client.post("/api/documents", json={"markdown": "# Secret"}).json()
        response = client.post(f"/api/documents/{created['documentId']}/decrypt", json={})
        assert response.status_code == 400

    def test_not_found(self, client):
        response = client.post("/api/documents/missing/decrypt", json={"password": "pw"})
        assert response.status_code == 404


class TestCleanup:
    def test_requires_secret(self, client):
        assert client.get("/api/cron/cleanup").status_code == 401
        response = client.get("/api/cron/cleanup", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401

    def test_purges(self, client, clock):
        client.post("/api/documents", json={"markdown": "# Old"})
        clock.now += timedelta(hours=49)
        response = client.get("/api/cron/cleanup", headers={"Authorization": "Bearer cron-secret"})
        assert response.status_code == 200
        assert response.json() == {"deleted": 1}

    def test_disabled_without_secret(self, service):
        app = create_app(Config(DEDUPE_PEPPER="p", CRON_SECRET=None), service=service)
        with TestClient(app) as client:
            response = client.get("/api/cron/cleanup", headers={"Authorization": "Bearer "})
        assert response.status_code == 401


class TestErrors:
    def test_store_failure_is_opaque(self, service, store):
        store.get = AsyncMock(side_effect=RuntimeError("connection refused: db.internal:5432"))
        app = create_app(Config(DEDUPE_PEPPER="p"), service=service)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/documents/abc")
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error.", "code": "server_error"}
        assert "db.internal" not in response.text


class TestStartup:
    def test_builds_service_from_config(self, tmp_path, store):
        cfg = Config(DEDUPE_PEPPER="p", STORAGE_DIR=tmp_path)
        with TestClient(create_app(cfg, store=store)) as client:
            assert client.post("/api/documents", json={"markdown": "x"}).status_code == 201
        assert len(store) == 1

    def test_refuses_unsafe_config(self, store):
        cfg = Config(DEDUPE_PEPPER=None, ALLOW_UNPEPPERED_DEDUPE=False)
        with pytest.raises(Exception):
            with TestClient(create_app(cfg, store=store)):
                pass

    def test_version(self, client):
        assert client.get("/api/version").json()["app_name"] == "sealdrop"
