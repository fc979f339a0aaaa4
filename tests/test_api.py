import pytest
from fastapi.testclient import TestClient

from meetinglog import main
from meetinglog.context import AppContext
from meetinglog.main import create_app
from meetinglog.services import crash_logging
from meetinglog.services.llm import LLMProviderError

from conftest import FakeProvider

MEETING = {
    "title": "Budget review",
    "date": "2024-05-20",
    "content": "Kim will prepare the budget.",
    "participants": ["Lee", "Kim"],
}


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(tmp_path, fake_provider):
    data_dir = tmp_path / "data"
    ctx = AppContext(cwd=str(tmp_path), data_dir=str(data_dir), config_path=str(data_dir / "config.json"))
    app = create_app(ctx=ctx, provider=fake_provider, setup_logging=False)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_and_fetch_meeting(client):
    created = client.post("/api/meetings", json=MEETING)
    assert created.status_code == 201
    body = created.json()
    assert body["decisions"] == "- Approve the revised budget"
    assert body["enrichment"]["tags"]["ok"] is True

    fetched = client.get(f"/api/meetings/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["action_items"][0]["assignee_name"] == "Kim"

    listing = client.get("/api/meetings", params={"limit": 5})
    assert listing.json()["pagination"]["total"] == 1


def test_missing_fields_are_400(client):
    response = client.post("/api/meetings", json={"title": "No content"})
    assert response.status_code == 400
    assert "content" in response.json()["detail"]


def test_generation_failure_is_502(client, fake_provider):
    fake_provider.failures["summarize"] = LLMProviderError("timed out")
    response = client.post("/api/meetings", json=MEETING)
    assert response.status_code == 502
    assert client.get("/api/meetings").json()["meetings"] == []


def test_unknown_meeting_is_404(client):
    assert client.get("/api/meetings/123").status_code == 404
    assert client.patch("/api/meetings/123", json={"title": "x"}).status_code == 404
    assert client.get("/api/meetings/123/versions").status_code == 404


def test_update_and_restore(client):
    meeting_id = client.post("/api/meetings", json=MEETING).json()["id"]

    patched = client.patch(f"/api/meetings/{meeting_id}", json={"title": "Renamed"})
    assert patched.json()["title"] == "Renamed"

    versions = client.get(f"/api/meetings/{meeting_id}/versions").json()
    assert [v["version_number"] for v in versions] == [1]

    restored = client.post(f"/api/meetings/{meeting_id}/versions/1/restore")
    assert restored.status_code == 200
    assert restored.json()["title"] == "Budget review"


def test_action_items_endpoints(client):
    meeting_id = client.post("/api/meetings", json=MEETING).json()["id"]
    created = client.post(
        "/api/action-items",
        json={"description": "Send minutes", "meeting_id": meeting_id, "priority": "low"},
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    done = client.patch(f"/api/action-items/{item_id}", json={"status": "completed"})
    assert done.json()["completion_date"] is not None

    summary = client.get("/api/action-items/summary").json()
    assert summary["total"] == 2
    assert summary["completed"] == 1

    pending = client.get("/api/action-items", params={"status": "pending"}).json()
    assert [i["description"] for i in pending] == ["Prepare budget"]


def test_duplicate_tag_is_409(client):
    assert client.post("/api/tags", json={"name": "ops"}).status_code == 201
    assert client.post("/api/tags", json={"name": "ops"}).status_code == 409


def test_link_tag_to_meeting(client):
    meeting_id = client.post("/api/meetings", json=MEETING).json()["id"]
    response = client.post(f"/api/meetings/{meeting_id}/tags", json={"name": "finance"})
    assert response.status_code == 200
    tags = client.get(f"/api/meetings/{meeting_id}/tags").json()
    assert "finance" in [t["name"] for t in tags]


def test_templates_crud(client):
    created = client.post("/api/templates", json={"name": "Retro", "template_content": "Went well"})
    assert created.status_code == 201
    template_id = created.json()["id"]

    updated = client.patch(f"/api/templates/{template_id}", json={"description": "Sprint retro"})
    assert updated.json()["description"] == "Sprint retro"

    assert client.delete(f"/api/templates/{template_id}").status_code == 200
    assert client.get(f"/api/templates/{template_id}").status_code == 404


def test_search(client, fake_provider):
    client.post("/api/meetings", json=MEETING)
    response = client.post("/api/search", json={"question": "budget"})
    assert response.status_code == 200
    assert response.json()["answer"] == fake_provider.answer
    assert client.get("/api/search", params={"q": ""}).status_code == 400


def test_suggest_tags_endpoint(client, fake_provider):
    response = client.post("/api/tags/suggest", json={"content": "Budget notes"})
    assert response.status_code == 200
    assert [t["name"] for t in response.json()["tags"]] == ["budget", "planning"]
    assert client.post("/api/tags/suggest", json={"content": ""}).status_code == 400

    fake_provider.failures["suggest_tags"] = LLMProviderError("timed out")
    assert client.post("/api/tags/suggest", json={"content": "x"}).status_code == 502


def test_template_null_fields_are_ignored(client):
    template_id = client.post(
        "/api/templates", json={"name": "Retro", "template_content": "Went well"}
    ).json()["id"]

    response = client.patch(f"/api/templates/{template_id}", json={"name": None, "template_content": None})

    assert response.status_code == 200
    assert response.json()["name"] == "Retro"
    assert response.json()["template_content"] == "Went well"


def test_default_templates_and_draft_meeting(client, fake_provider):
    initialized = client.post("/api/templates/initialize-defaults").json()
    assert initialized["created"] > 0
    assert client.post("/api/templates/initialize-defaults").json()["created"] == 0

    defaults = client.get("/api/templates/defaults").json()
    standup = next(t for t in defaults if t["meeting_type"] == "standup")

    response = client.post(
        f"/api/templates/{standup['id']}/meetings", json={"title": "Monday standup", "date": "2024-05-06"}
    )
    assert response.status_code == 201
    draft = response.json()
    assert draft["status"] == "draft"
    assert draft["raw_content"] == standup["template_content"]
    assert fake_provider.calls == []

    missing = client.post("/api/templates/999/meetings", json={"title": "x", "date": "2024-05-06"})
    assert missing.status_code == 404


def test_advanced_and_saved_search(client, fake_provider):
    client.post("/api/meetings", json=MEETING)
    fake_provider.calls.clear()

    advanced = client.post(
        "/api/search/advanced", json={"query": "prepare", "filters": {"participants": "kim"}}
    )
    assert advanced.status_code == 200
    assert [m["title"] for m in advanced.json()["meetings"]] == ["Budget review"]
    assert fake_provider.calls == []

    saved = client.post("/api/search/saved", json={"name": "Kim", "query": "prepare"})
    assert saved.status_code == 201
    search_id = saved.json()["id"]
    assert [s["name"] for s in client.get("/api/search/saved").json()] == ["Kim"]

    ran = client.post(f"/api/search/saved/{search_id}/run")
    assert [m["title"] for m in ran.json()["meetings"]] == ["Budget review"]

    assert client.delete(f"/api/search/saved/{search_id}").status_code == 200
    assert client.delete(f"/api/search/saved/{search_id}").status_code == 404
    assert client.post(f"/api/search/saved/{search_id}/run").status_code == 404


def test_shutdown_releases_crash_log(tmp_path, monkeypatch, fake_provider):
    monkeypatch.setattr(main, "configure_logging", lambda logs_dir: "")
    data_dir = tmp_path / "data"
    ctx = AppContext(cwd=str(tmp_path), data_dir=str(data_dir), config_path=str(data_dir / "config.json"))

    app = create_app(ctx=ctx, provider=fake_provider, setup_logging=True)
    handle = crash_logging._crash_file_handle
    with TestClient(app) as test_client:
        assert test_client.get("/api/health").status_code == 200

    assert (tmp_path / "logs" / "crash.log").exists()
    assert handle is not None and handle.closed
    assert crash_logging._crash_file_handle is None
