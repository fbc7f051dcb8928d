"""
Document Tests
==============

Upload validation, visibility, sharing, review and deletion.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from casepilot.auth import AuthService, Principal
from casepilot.config import get_settings
from casepilot.db.models import Document, Role
from casepilot.errors import UpstreamFailure
from casepilot.services.documents import DocumentService
from casepilot.storage import BlobStorage, LocalStorage
from casepilot.tests.factories import DEFAULT_PASSWORD, create_case, register

PDF_BYTES = b"%PDF-1.4 test document"


def _upload(client, principal, filename="evidence.pdf", data=PDF_BYTES, **form):
    return client.post(
        "/api/v1/documents",
        files={"file": (filename, data, "application/pdf")},
        data=form,
        headers=principal["headers"],
    )


def _uploaded(client, principal, **form):
    response = _upload(client, principal, **form)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _blob_key(doc):
    return doc["fileUrl"][len("/files/"):]


class TestStorage:
    """LocalStorage backend"""

    def test_put_get_delete(self, tmp_path):
        store = LocalStorage(base_path=str(tmp_path / "blobs"), base_url="/files/")
        meta = store.put("documents/a/general/x.txt", b"hello")
        assert meta.url == "/files/documents/a/general/x.txt"
        assert meta.size_bytes == 5
        assert store.get(meta.key) == b"hello"
        assert store.delete(meta.key) is True
        assert store.exists(meta.key) is False
        assert store.delete(meta.key) is False

    def test_key_cannot_escape_base(self, tmp_path):
        store = LocalStorage(base_path=str(tmp_path / "blobs"))
        with pytest.raises(ValueError):
            store.put("../outside.txt", b"x")

    def test_generated_key_sanitizes_name(self):
        key = BlobStorage.generate_key("owner", "general", "../../etc/pass wd.pdf")
        assert key.startswith("documents/owner/general/")
        assert key.endswith("_pass_wd.pdf")
        assert ".." not in key


class TestUpload:
    """POST /api/v1/documents"""

    def test_upload_pending_document(self, client, storage):
        citizen = register(client, "citizen")
        doc = _uploaded(client, citizen, title="Lease", category="contract", tags="lease, rent, lease")

        assert doc["status"] == "pending"
        assert doc["title"] == "Lease"
        assert doc["fileSize"] == len(PDF_BYTES)
        assert doc["tags"] == ["lease", "rent"]
        assert doc["isPublic"] is False
        assert storage.get(_blob_key(doc)) == PDF_BYTES

    def test_title_defaults_to_filename(self, client):
        citizen = register(client, "citizen")
        doc = _uploaded(client, citizen, filename="scan.pdf")
        assert doc["title"] == "scan.pdf"

    def test_rejects_extension(self, client):
        citizen = register(client, "citizen")
        response = _upload(client, citizen, filename="payload.exe")
        assert response.status_code == 400
        assert ".exe" in response.json()["message"]

    def test_rejects_empty_file(self, client):
        citizen = register(client, "citizen")
        assert _upload(client, citizen, data=b"").status_code == 400

    def test_rejects_oversized_file(self, client, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_upload_bytes", 8)
        citizen = register(client, "citizen")
        response = _upload(client, citizen, data=b"x" * 9)
        assert response.status_code == 400
        assert "size limit" in response.json()["message"]

    def test_case_must_be_visible(self, client):
        owner = register(client, "citizen")
        other = register(client, "citizen")
        case = create_case(client, owner)
        assert _upload(client, other, caseId=case["id"]).status_code == 404
        doc = _uploaded(client, owner, caseId=case["id"])
        assert doc["caseId"] == case["id"]


class TestVisibility:
    """Listing, detail reads and sharing"""

    def test_list_shows_own_and_shared(self, client):
        owner = register(client, "citizen")
        friend = register(client, "citizen")
        doc = _uploaded(client, owner)
        _uploaded(client, friend, title="Friend's own")

        response = client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": friend["user"]["id"], "principalKind": "citizen"}],
        }, headers=owner["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["sharedWith"][0]["permission"] == "read"

        titles = {d["title"] for d in client.get("/api/v1/documents", headers=friend["headers"]).json()["data"]}
        assert titles == {"Friend's own", "evidence.pdf"}

    def test_read_share_cannot_edit(self, client):
        owner = register(client, "citizen")
        friend = register(client, "citizen")
        doc = _uploaded(client, owner)
        client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": friend["user"]["id"], "principalKind": "citizen"}],
        }, headers=owner["headers"])

        response = client.put(f"/api/v1/documents/{doc['id']}", json={"title": "Mine now"}, headers=friend["headers"])
        assert response.status_code == 403

        client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": friend["user"]["id"], "principalKind": "citizen", "permission": "edit"}],
        }, headers=owner["headers"])
        response = client.put(f"/api/v1/documents/{doc['id']}", json={"title": "Edited"}, headers=friend["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Edited"

    def test_unshare(self, client):
        owner = register(client, "citizen")
        friend = register(client, "citizen")
        doc = _uploaded(client, owner)
        client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": friend["user"]["id"], "principalKind": "citizen"}],
        }, headers=owner["headers"])

        response = client.delete(f"/api/v1/documents/{doc['id']}/share/{friend['user']['id']}",
                                 headers=owner["headers"])
        assert response.status_code == 200
        assert client.get(f"/api/v1/documents/{doc['id']}", headers=friend["headers"]).status_code == 404

    def test_public_document_readable_but_not_listed(self, client):
        owner = register(client, "citizen")
        stranger = register(client, "lawyer")
        doc = _uploaded(client, owner)
        client.post(f"/api/v1/documents/{doc['id']}/share", json={"isPublic": True}, headers=owner["headers"])

        assert client.get(f"/api/v1/documents/{doc['id']}", headers=stranger["headers"]).status_code == 200
        assert client.get("/api/v1/documents", headers=stranger["headers"]).json()["count"] == 0

    def test_cannot_share_with_self_or_unknown(self, client):
        owner = register(client, "citizen")
        doc = _uploaded(client, owner)
        response = client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": owner["user"]["id"], "principalKind": "citizen"}],
        }, headers=owner["headers"])
        assert response.status_code == 400
        response = client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": "nobody", "principalKind": "lawyer"}],
        }, headers=owner["headers"])
        assert response.status_code == 404

    def test_download_link(self, client):
        owner = register(client, "citizen")
        doc = _uploaded(client, owner)
        data = client.get(f"/api/v1/documents/{doc['id']}/download", headers=owner["headers"]).json()["data"]
        assert data == {"downloadUrl": doc["fileUrl"], "fileName": "evidence.pdf", "fileType": "application/pdf"}


class TestReviewAndDelete:
    """Review is one-way; delete removes the blob"""

    def test_case_lawyer_reviews_client_document(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)
        client.put(f"/api/v1/cases/{case['id']}/assign", json={"action": "accept"}, headers=lawyer["headers"])
        doc = _uploaded(client, citizen, caseId=case["id"])

        response = client.patch(f"/api/v1/documents/{doc['id']}/review",
                                json={"status": "approved"}, headers=lawyer["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "approved"

        response = client.patch(f"/api/v1/documents/{doc['id']}/review",
                                json={"status": "rejected"}, headers=lawyer["headers"])
        assert response.status_code == 400

    def test_review_needs_valid_outcome(self, client):
        citizen = register(client, "citizen")
        doc = _uploaded(client, citizen)
        response = client.patch(f"/api/v1/documents/{doc['id']}/review",
                                json={"status": "pending"}, headers=citizen["headers"])
        assert response.status_code == 400

    def test_client_documents(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        other = register(client, "citizen")
        case = create_case(client, citizen)
        client.put(f"/api/v1/cases/{case['id']}/assign", json={"action": "accept"}, headers=lawyer["headers"])
        doc = _uploaded(client, citizen)
        _uploaded(client, other)

        response = client.get("/api/v1/documents/clients/all", headers=lawyer["headers"])
        assert [d["id"] for d in response.json()["data"]] == [doc["id"]]
        assert client.get("/api/v1/documents/clients/all", headers=citizen["headers"]).status_code == 403

    def test_owner_deletes_document_and_blob(self, client, storage):
        owner = register(client, "citizen")
        doc = _uploaded(client, owner)
        key = _blob_key(doc)
        assert storage.exists(key)

        response = client.delete(f"/api/v1/documents/{doc['id']}", headers=owner["headers"])
        assert response.status_code == 200
        assert not storage.exists(key)
        assert client.get(f"/api/v1/documents/{doc['id']}", headers=owner["headers"]).status_code == 404

    def test_shared_user_cannot_delete(self, client):
        owner = register(client, "citizen")
        friend = register(client, "citizen")
        doc = _uploaded(client, owner)
        client.post(f"/api/v1/documents/{doc['id']}/share", json={
            "sharedWith": [{"principalId": friend["user"]["id"], "principalKind": "citizen", "permission": "edit"}],
        }, headers=owner["headers"])
        assert client.delete(f"/api/v1/documents/{doc['id']}", headers=friend["headers"]).status_code == 403


class TestBlobStoreFailures:
    """Blob store errors never leak details and never leave half-written state"""

    def test_failed_blob_delete_is_logged_and_swallowed(self, client, storage, monkeypatch, caplog):
        owner = register(client, "citizen")
        doc = _uploaded(client, owner)

        def broken_delete(key):
            raise OSError("bucket unreachable")

        monkeypatch.setattr(storage, "delete", broken_delete)
        with caplog.at_level(logging.WARNING, logger="casepilot.services.documents"):
            response = client.delete(f"/api/v1/documents/{doc['id']}", headers=owner["headers"])

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get(f"/api/v1/documents/{doc['id']}", headers=owner["headers"]).status_code == 404
        assert any("Failed to delete blob" in r.getMessage() for r in caplog.records)

    def test_failed_blob_put_returns_generic_error(self, client, storage, monkeypatch, db_session):
        owner = register(client, "citizen")

        def broken_put(key, data, mime_type=None):
            raise OSError("/var/secret/path: permission denied")

        monkeypatch.setattr(storage, "put", broken_put)
        response = _upload(client, owner)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": UpstreamFailure.default_message}
        assert "secret" not in response.text
        assert db_session.query(Document).count() == 0

    def test_failed_record_save_removes_blob(self, db_session, storage, monkeypatch):
        _, record = AuthService(db_session).register(Role.CITIZEN, "Blob Owner", "blob@example.com", DEFAULT_PASSWORD)
        owner = Principal.from_record(record)

        def broken_commit():
            raise OperationalError("INSERT INTO documents", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", broken_commit)
        with pytest.raises(OperationalError):
            DocumentService(db_session, storage).upload(owner, "evidence.pdf", PDF_BYTES, "application/pdf")

        assert [p for p in storage.base_path.rglob("*") if p.is_file()] == []
        monkeypatch.undo()
        assert db_session.query(Document).count() == 0
