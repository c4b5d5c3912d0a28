from __future__ import annotations

from typing import Any

import pytest

from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.errors import ErrCode, ProviderError, TranscriptNotFoundError
from meeting_bot_agent.common.ids import new_uuid
from meeting_bot_agent.connectors.base import BotHandle
from meeting_bot_agent.storage.db import Database


class FakeProvisioner:
    """
    Провайдер ботов для тестов: считает вызовы, умеет падать по флагам.
    missing: bot_id, для которых транскрипт отвечает 404.
    failing: bot_id, для которых транскрипт падает временной ошибкой.
    """

    def __init__(
        self,
        *,
        fail_create: int = 0,
        fail_fetch: bool = False,
        transcript: Any = None,
        bot_id: str | None = None,
        missing: set[str] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.fail_create = fail_create
        self.fail_fetch = fail_fetch
        self.transcript = transcript if transcript is not None else [{"speaker": "A", "words": []}]
        self.bot_id = bot_id
        self.missing = set(missing or ())
        self.failing = set(failing or ())
        self.created: list[dict[str, str]] = []
        self.fetched: list[str] = []
        self.removed: list[str] = []

    def create_bot(self, meeting_url: str, callback_url: str, notify_url: str) -> BotHandle:
        if self.fail_create > 0:
            self.fail_create -= 1
            raise ProviderError(ErrCode.BOT_PROVIDER_ERROR, "provider unavailable")
        bot_id = self.bot_id or new_uuid()
        self.created.append(
            {"meeting_url": meeting_url, "callback_url": callback_url, "notify_url": notify_url}
        )
        return BotHandle(bot_id=bot_id, raw={"id": bot_id})

    def fetch_transcript(self, bot_id: str) -> Any:
        self.fetched.append(bot_id)
        if bot_id in self.missing:
            raise TranscriptNotFoundError(details={"bot_id": bot_id})
        if self.fail_fetch or bot_id in self.failing:
            raise ProviderError(ErrCode.BOT_PROVIDER_ERROR, "transcript unavailable")
        return self.transcript

    def remove_bot(self, bot_id: str) -> None:
        self.removed.append(bot_id)


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    s = get_settings()
    monkeypatch.setattr(s, "recall_retry_backoff_ms", 0)
    monkeypatch.setattr(s, "recall_retries", 1)
    monkeypatch.setattr(s, "idempotency_backend", "memory")
    return s


@pytest.fixture()
def db(tmp_path):
    # файловая SQLite: все потоки видят одну базу
    database = Database(f"sqlite:///{tmp_path / 'meetings.db'}")
    database.create_all()
    yield database
    database.close()


@pytest.fixture()
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture()
def make_provisioner():
    return FakeProvisioner
