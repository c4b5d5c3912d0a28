from __future__ import annotations

from typing import Any

import pytest
import requests

from meeting_bot_agent.common.errors import ProviderError, TranscriptNotFoundError
from meeting_bot_agent.connectors.recall.adapter import RecallBotConnector
from meeting_bot_agent.services.provisioning_service import (
    create_bot_with_retries,
    fetch_transcript_with_retries,
)


class _Resp:
    def __init__(self, status_code: int, data: Any = None) -> None:
        self.status_code = status_code
        self._data = data
        self.content = b"{}" if data is not None else b""
        self.text = str(data)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)

    def json(self) -> Any:
        return self._data


def test_create_bot_sends_payload(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []

    def _fake_request(**kwargs):
        calls.append(kwargs)
        return _Resp(201, {"id": "bot-42"})

    monkeypatch.setattr(requests, "request", _fake_request)
    c = RecallBotConnector(
        base_url="https://recall.example/api/v1", api_token="tkn", bot_name="Cogito"
    )
    bot = c.create_bot("https://meet.example/abc", "wss://svc/v1/transcript", "https://svc/hook")

    assert bot.bot_id == "bot-42"
    call = calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://recall.example/api/v1/bot/"
    assert call["headers"]["Authorization"] == "Token tkn"
    assert call["json"]["bot_name"] == "Cogito"
    ws_url = call["json"]["real_time_media"]["websocket_transcription_url"]
    assert ws_url.endswith("/v1/transcript")
    assert call["json"]["webhook_url"] == "https://svc/hook"
    assert call["timeout"] > 0


def test_create_bot_without_id_is_provider_error(monkeypatch) -> None:
    monkeypatch.setattr(requests, "request", lambda **kwargs: _Resp(200, {"status": "ok"}))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError):
        c.create_bot("https://meet.example/abc", "ws://x", "http://y")


def test_http_error_is_wrapped(monkeypatch) -> None:
    monkeypatch.setattr(requests, "request", lambda **kwargs: _Resp(503, {"detail": "busy"}))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError) as ei:
        c.fetch_transcript("bot-1")
    assert ei.value.details["status_code"] == 503


def test_timeout_is_wrapped(monkeypatch) -> None:
    def _timeout(**kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(requests, "request", _timeout)
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError):
        c.remove_bot("bot-1")


def _counting(monkeypatch, outcome) -> list[dict[str, Any]]:
    """
    Подменяет requests.request: outcome либо ответ, либо исключение.
    """
    calls: list[dict[str, Any]] = []

    def _fake_request(**kwargs):
        calls.append(kwargs)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(requests, "request", _fake_request)
    return calls


def _create(c: RecallBotConnector):
    return create_bot_with_retries(
        c, meeting_url="https://meet.example/abc", callback_url="ws://x", notify_url="http://y"
    )


def test_create_bot_client_error_is_not_retried(monkeypatch) -> None:
    # recall_retries=1, но 400 окончательный
    calls = _counting(monkeypatch, _Resp(400, {"detail": "bad meeting_url"}))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError) as ei:
        _create(c)
    assert len(calls) == 1
    assert ei.value.retryable is False
    assert ei.value.details["status_code"] == 400


def test_create_bot_read_timeout_is_not_retried(monkeypatch) -> None:
    calls = _counting(monkeypatch, requests.ReadTimeout("read timed out"))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError) as ei:
        _create(c)
    assert len(calls) == 1
    assert ei.value.retryable is False


def test_create_bot_server_error_is_retried(monkeypatch) -> None:
    calls = _counting(monkeypatch, _Resp(503, {"detail": "busy"}))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError) as ei:
        _create(c)
    assert len(calls) == 2
    assert ei.value.details["attempts"] == 2


def test_create_bot_connection_error_is_retried(monkeypatch) -> None:
    calls = _counting(monkeypatch, requests.ConnectTimeout("connect timed out"))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError):
        _create(c)
    assert len(calls) == 2


def test_fetch_transcript_read_timeout_is_retried(monkeypatch) -> None:
    calls = _counting(monkeypatch, requests.ReadTimeout("read timed out"))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(ProviderError):
        fetch_transcript_with_retries(c, bot_id="bot-1")
    assert len(calls) == 2
    assert all(call["method"] == "GET" for call in calls)


def test_fetch_transcript_404_is_not_found_and_not_retried(monkeypatch) -> None:
    calls = _counting(monkeypatch, _Resp(404, {"detail": "not found"}))
    c = RecallBotConnector(base_url="https://recall.example/api/v1")
    with pytest.raises(TranscriptNotFoundError) as ei:
        fetch_transcript_with_retries(c, bot_id="bot-1")
    assert len(calls) == 1
    assert ei.value.details == {"bot_id": "bot-1"}
