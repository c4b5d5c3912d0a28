from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from apps.api_gateway.main import create_app


@pytest.fixture()
def client(db, provisioner):
    with TestClient(create_app(db=db, provisioner=provisioner)) as c:
        yield c


def _create_bot(client) -> dict:
    r = client.post(
        "/v1/meetings/bot",
        json={"meeting_url": "https://meet.example/abc", "requested_by": 11},
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_metrics_endpoint(client):
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "meeting_bot_requests_total" in r.text


def test_create_bot_requires_meeting_url(client, provisioner):
    r = client.post("/v1/meetings/bot", json={"requested_by": 1})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "validation"
    assert provisioner.created == []


def test_create_bot_provider_down_is_502(db, make_provisioner):
    app = create_app(db=db, provisioner=make_provisioner(fail_create=10))
    with TestClient(app) as client:
        r = client.post("/v1/meetings/bot", json={"meeting_url": "https://meet.example/abc"})
    assert r.status_code == 502
    assert r.json()["detail"]["stage"] == "provisioning"


def test_get_unknown_meeting_is_404(client):
    assert client.get("/v1/meetings/nope").status_code == 404
    assert client.get("/v1/meetings/nope/turns").status_code == 404


def test_end_to_end_meeting_flow(client, provisioner):
    body = _create_bot(client)
    block_id = body["meeting_block"]["block_id"]
    bot_id = body["meeting"]["bot_id"]
    assert body["meeting"]["status"] == "joining"

    with client.websocket_connect("/v1/transcript") as ws:
        for speaker, text in [("Alice", "hi"), ("Bob", "hello"), ("Alice", "bye")]:
            ws.send_json({"bot_id": bot_id, "speaker": speaker, "text": text})
            ack = ws.receive_json()
            assert ack["event_type"] == "turn.ack"
            assert ack["result"] == "appended"

        # ошибка одной реплики не рвёт соединение
        ws.send_text("{not json")
        assert ws.receive_json()["code"] == "bad_json"
        ws.send_json({"bot_id": "ghost", "speaker": "X", "text": "lost"})
        assert ws.receive_json()["result"] == "dropped"
        ws.send_json({"bot_id": bot_id, "speaker": "Bob", "text": "still here"})
        assert ws.receive_json()["position"] == 4

    r = client.post(
        "/v1/webhooks/bot-status",
        json={"event": "bot.status_change", "data": {"bot_id": bot_id, "status": {"code": "done"}}},
    )
    assert r.status_code == 200
    assert r.json()["result"] == "applied"
    assert r.json()["status"] == "completed"

    again = client.post("/v1/webhooks/bot-status", json={"bot_id": bot_id, "status": "completed"})
    assert again.status_code == 200
    assert again.json()["result"] == "noop"

    meeting = client.get(f"/v1/meetings/{block_id}").json()
    assert meeting["meeting"]["status"] == "completed"
    assert meeting["meeting"]["full_transcript"] == provisioner.transcript
    assert sorted(a["name"] for a in meeting["attendees"]) == ["Alice", "Bob"]

    turns = client.get(f"/v1/meetings/{block_id}/turns").json()["turns"]
    assert [(t["position"], t["speaker"], t["content"]) for t in turns] == [
        (1, "Alice", "hi"),
        (2, "Bob", "hello"),
        (3, "Alice", "bye"),
        (4, "Bob", "still here"),
    ]


def test_webhook_invalid_status_is_400(client):
    bot_id = _create_bot(client)["meeting"]["bot_id"]
    r = client.post("/v1/webhooks/bot-status", json={"bot_id": bot_id, "status": "teleported"})
    assert r.status_code == 400


def test_webhook_unknown_bot_is_acknowledged(client):
    r = client.post("/v1/webhooks/bot-status", json={"bot_id": "ghost", "status": "completed"})
    assert r.status_code == 200
    assert r.json()["result"] == "not_found"
