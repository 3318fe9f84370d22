from uuid import uuid4

from fastapi.testclient import TestClient

from apps.api import main
from libs.core import BasicUser, ContentSuggestion
from libs.db import models

from conftest import make_row


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_requires_basic_auth(resource_repo, patient_repo):
    main.app.dependency_overrides[main.get_users] = lambda: (
        BasicUser("slp", "secret", "slp@example.com"),
    )
    main.app.dependency_overrides[main.get_resource_repo] = lambda: resource_repo
    main.app.dependency_overrides[main.get_patient_repo] = lambda: patient_repo
    try:
        with TestClient(main.app) as anon:
            assert anon.get("/api/resources").json()["detail"] == "Missing auth"
            bad = anon.get("/api/patients", auth=("slp", "wrong"))
            assert bad.status_code == 401
            assert bad.json()["detail"] == "Invalid credentials"
            assert bad.headers["www-authenticate"] == "Basic"
    finally:
        main.app.dependency_overrides.clear()


def test_valid_credentials_reach_routes(resource_repo):
    main.app.dependency_overrides[main.get_users] = lambda: (
        BasicUser("slp", "secret", "slp@example.com"),
    )
    main.app.dependency_overrides[main.get_resource_repo] = lambda: resource_repo
    try:
        with TestClient(main.app) as authed:
            response = authed.get("/api/resources", auth=("slp", "secret"))
            assert response.status_code == 200
            assert response.json() == {"data": []}
            resource_repo.list_recent.assert_awaited_once()
            assert resource_repo.list_recent.call_args.args[0] == "slp"
    finally:
        main.app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# resources


def test_create_resource_returns_camel_case(client, resource_repo):
    response = client.post(
        "/api/upload",
        json={"title": "Sun Cards", "description": "s words", "ageRange": "4-6", "tags": "sun"},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["ageRange"] == "4-6"
    assert data["tags"][0] == "sun"
    assert "createdAt" in data and "patientIds" in data


def test_create_resource_requires_title(client):
    response = client.post("/api/upload", json={"description": "d"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Title and description are required."


def test_list_resources(client, resource_repo):
    resource_repo.list_recent.return_value = [make_row(title="A"), make_row(title="B", age=1)]
    response = client.get("/api/resources")
    assert [r["title"] for r in response.json()["data"]] == ["A", "B"]


def test_update_resource_invalid_id(client, resource_repo):
    response = client.put("/api/resources/not-a-uuid", json={"title": "x"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid resource id"
    resource_repo.get.assert_not_called()


def test_update_resource_not_found(client):
    response = client.put(f"/api/resources/{uuid4()}", json={"title": "x"})
    assert response.status_code == 404


def test_update_resource(client, resource_repo):
    row = make_row(title="Old", description="desc")
    resource_repo.get.return_value = row
    response = client.put(f"/api/resources/{row.id}", json={"title": "New", "type": "drill"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "New"
    assert data["description"] == "desc"
    assert data["type"] == "drill"


def test_assign_patients_requires_array(client, resource_repo):
    row = make_row(title="T")
    resource_repo.get.return_value = row
    bad = client.put(f"/api/resources/{row.id}/patients", json={"patientIds": "p1"})
    assert bad.status_code == 400

    ok = client.put(f"/api/resources/{row.id}/patients", json={"patientIds": ["p1"]})
    assert ok.status_code == 200
    assert ok.json()["data"]["patientIds"] == ["p1"]


def test_delete_resource(client, resource_repo):
    row = make_row(title="T")
    resource_repo.get.return_value = row
    response = client.delete(f"/api/resources/{row.id}")
    assert response.status_code == 204
    resource_repo.delete.assert_awaited_once_with(row)


# ---------------------------------------------------------------------------
# patients


def test_create_and_delete_patient(client, patient_repo, resource_repo):
    created = client.post("/api/patients", json={"name": "Alex"})
    assert created.status_code == 201
    patient = created.json()["data"]
    assert patient["name"] == "Alex"

    pid = str(uuid4())
    patient_repo.get.return_value = models.Patient(id=pid, name="Alex", owner_id="therapist")
    response = client.delete(f"/api/patients/{pid}")
    assert response.status_code == 204
    resource_repo.pull_patient.assert_awaited_once_with("therapist", pid)


def test_create_patient_requires_name(client):
    assert client.post("/api/patients", json={}).status_code == 400


def test_delete_patient_invalid_id(client):
    assert client.delete("/api/patients/123").status_code == 400


# ---------------------------------------------------------------------------
# files


def test_upload_file_then_download_once_attached(client, resource_repo, llm):
    llm.suggest_metadata.return_value = ContentSuggestion(tags=["greeting"])
    response = client.post(
        "/api/upload-file",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["filename"] == "notes.txt"
    assert body["url"] == f"/api/files/{body['fileId']}"
    assert body["suggested"]["tags"] == ["greeting"]

    # not attached to any resource of the caller yet
    assert client.get(body["url"]).status_code == 404

    resource_repo.find_by_file.return_value = make_row(title="T", file_id=body["fileId"])
    download = client.get(body["url"])
    assert download.status_code == 200
    assert download.content == b"hello"


def test_download_file_bad_id(client):
    assert client.get("/api/files/not-an-id").status_code == 400


def test_upload_file_without_file(client):
    assert client.post("/api/upload-file").status_code == 400


def test_upload_file_too_large(client, monkeypatch):
    from types import SimpleNamespace

    monkeypatch.setattr(main, "get_settings", lambda: SimpleNamespace(max_upload_bytes=3))
    response = client.post(
        "/api/upload-file", files={"file": ("big.pdf", b"0123456789", "application/pdf")}
    )
    assert response.status_code == 413


def test_download_file(client, resource_repo, storage):
    file_id = storage.save("sheet.pdf", "application/pdf", b"%PDF-data")
    resource_repo.find_by_file.return_value = make_row(title="T", file_id=file_id)
    response = client.get(f"/api/files/{file_id}")
    assert response.status_code == 200
    assert response.content == b"%PDF-data"
    assert response.headers["content-type"] == "application/pdf"


def test_download_file_not_owned(client, resource_repo, storage):
    file_id = storage.save("sheet.pdf", "application/pdf", b"%PDF-data")
    response = client.get(f"/api/files/{file_id}")
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# chat


def test_chat_returns_reply_and_annotated_resources(client, resource_repo):
    resource_repo.list_recent.return_value = [
        make_row(title="Articulation Drill Cards /s/", description="Picture cards"),
        make_row(title="Core Board", description="AAC core words", age=1),
    ]
    response = client.post(
        "/api/chat",
        json={"message": "drill cards", "history": [{"role": "user", "content": "hi"}]},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["reply"] == "Try the drill cards."
    assert body["rankingEmpty"] is False
    assert body["resources"][0]["title"] == "Articulation Drill Cards /s/"
    assert body["resources"][0]["insight"] == "note 1"


def test_chat_requires_message(client):
    assert client.post("/api/chat", json={"message": "  "}).status_code == 400


def test_chat_without_generator_credentials(client, llm):
    llm.is_configured.return_value = False
    response = client.post("/api/chat", json={"message": "drill"})
    assert response.status_code == 500
    assert "REPLICATE_API_TOKEN" in response.json()["detail"]


def test_chat_generator_failure_returns_fallback(client, llm):
    llm.answer_with_resources.side_effect = RuntimeError("upstream 503")
    response = client.post("/api/chat", json={"message": "drill"})
    assert response.status_code == 502
    body = response.json()
    assert body["detail"] == "upstream 503"
    assert body["fallback"] == {
        "reply": "Assistant unavailable. Please try again later.",
        "resources": [],
    }


def test_llm_client_is_built_once(monkeypatch):
    from unittest.mock import MagicMock

    factory = MagicMock()
    monkeypatch.setattr(main, "ReplicateLLMClient", factory)
    main.get_llm_client.cache_clear()
    try:
        assert main.get_llm_client() is main.get_llm_client()
        factory.assert_called_once_with()
    finally:
        main.get_llm_client.cache_clear()
