# tests/test_app.py

from __future__ import annotations

from imon.records.keys import OPERATING_INFO_KEY
from imon.storage.document_store import DocumentStore

from .fakes import FakeClock


def _register(client, name: str = "alice") -> str:
    resp = client.post("/record/new", json={"user_name": name})
    assert resp.status_code == 200
    return resp.get_json()["data"]["user_key"]


def test_health(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_plain_routes_session(client, fake_now: FakeClock) -> None:
    key = _register(client)

    resp = client.post("/task/new", json={"key": key, "task": "review"})
    assert resp.get_json()["data"]["current_task"]["name"] == "review"

    fake_now.advance(45)
    resp = client.post("/task/update", json={"key": key, "state": "End"})
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["data"]["current_task"]["duration"] == 45

    resp = client.post("/record", json={"key": key})
    log = resp.get_json()["data"]["task_log"]
    assert [t["name"] for t in log["task_history"]] == ["review"]

    resp = client.get("/record/all")
    assert len(resp.get_json()["data"]["user_records"]) == 1

    resp = client.post("/task/reset", json={"key": key})
    assert resp.get_json()["data"]["user_data"]["task_history"] == []


def test_guard_rejection_is_422(client) -> None:
    key = _register(client)
    resp = client.post("/task/update", json={"key": key, "state": "Break"})
    assert resp.status_code == 422
    assert resp.get_json()["field"] == "state"


def test_unknown_key_is_404(client) -> None:
    resp = client.post("/record", json={"key": "user:nobody:0001"})
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Invalid credentials"


def test_invalid_json_is_400(client) -> None:
    resp = client.post("/task/new", data="{not json", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json()["status"] == "error"


def test_rpc_routes_enforce_role(client) -> None:
    envelope = {
        "metadata": {"of": "sudo", "event_type": "register_record"},
        "payload": {"user_name": "root"},
    }
    resp = client.post("/rpc/user", json=envelope)
    assert resp.status_code == 422
    assert resp.get_json()["field"] == "metadata.of"

    resp = client.post("/rpc/sudo", json=envelope)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["user_key"] == "sudo:root:0000"


def test_rpc_sudo_publish(client) -> None:
    key = client.post(
        "/rpc/sudo",
        json={"metadata": {"of": "sudo", "event_type": "register_record"}, "payload": {"user_name": "r"}},
    ).get_json()["data"]["user_key"]

    resp = client.post(
        "/rpc/sudo",
        json={
            "metadata": {"of": "sudo", "event_type": "add_task"},
            "payload": {"key": key, "task": {"name": "triage", "description": "inbox"}},
        },
    )
    published = resp.get_json()["data"]["user_data"]["published_tasks"]
    assert published[0]["description"] == "inbox"


def test_unknown_route_and_method_render_json(client) -> None:
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["status"] == "error"

    resp = client.get("/record/new")
    assert resp.status_code == 405
    assert resp.get_json()["status"] == "error"


def test_corrupt_index_is_internal_error(client, documents: DocumentStore) -> None:
    _register(client)
    info = documents.get(OPERATING_INFO_KEY)
    assert info is not None
    info["user_list"].append("user:ghost:0009")
    documents.put(OPERATING_INFO_KEY, info)

    resp = client.get("/record/all")

    assert resp.status_code == 500
    assert resp.get_json() == {"status": "error", "message": "Internal server error"}


def test_blank_user_name_is_rejected_as_payload_field(client) -> None:
    resp = client.post("/record/new", json={"user_name": "   "})

    assert resp.status_code == 422
    assert resp.get_json()["field"] == "payload.user_name"
    assert client.get("/record/all").get_json()["data"]["user_records"] == []
