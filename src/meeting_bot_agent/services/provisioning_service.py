"""
Service layer для провайдера ботов.

Содержит:
- выбор провайдера (real/mock)
- retry/backoff для create_bot / fetch_transcript
- адреса, которые бот получает при создании (realtime WS + webhook)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.errors import ErrCode, ProviderError
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.common.utils import join_url, to_ws_url
from meeting_bot_agent.connectors.base import BotHandle, BotProvisioner
from meeting_bot_agent.connectors.recall.adapter import RecallBotConnector
from meeting_bot_agent.connectors.recall.mock import MockRecallBotConnector

log = get_project_logger()

T = TypeVar("T")

TRANSCRIPT_WS_PATH = "/v1/transcript"
LIFECYCLE_WEBHOOK_PATH = "/v1/webhooks/bot-status"


def resolve_provisioner() -> tuple[str, BotProvisioner]:
    s = get_settings()
    provider = (s.bot_provider or "recall_mock").strip().lower()
    if provider == "recall":
        return provider, RecallBotConnector()
    if provider == "recall_mock":
        return provider, MockRecallBotConnector()
    raise ProviderError(
        ErrCode.BOT_PROVIDER_ERROR,
        f"Неизвестный provider: {provider}",
        details={"allowed": "recall,recall_mock"},
    )


def callback_addresses(public_base_url: str | None = None) -> tuple[str, str]:
    """
    (адрес realtime-потока реплик, адрес вебхука статусов)
    """
    base = public_base_url or get_settings().public_base_url
    return to_ws_url(join_url(base, TRANSCRIPT_WS_PATH)), join_url(base, LIFECYCLE_WEBHOOK_PATH)


def _retry_config() -> tuple[int, float]:
    s = get_settings()
    attempts = max(1, int(s.recall_retries) + 1)
    backoff_sec = max(0, int(s.recall_retry_backoff_ms)) / 1000.0
    return attempts, backoff_sec


def _with_retries(operation: str, call: Callable[[], T], *, context: dict[str, Any]) -> T:
    """
    Повторяет только ошибки с retryable=True (сеть, 5xx).
    Неповторяемая ошибка пробрасывается сразу как есть.
    """
    attempts, backoff_sec = _retry_config()
    attempt = 1

    while True:
        try:
            return call()
        except ProviderError as e:
            payload = {
                **context,
                "attempt": attempt,
                "error": e.message,
                "details": e.details or {},
            }
            if not e.retryable:
                log.warning(f"bot_provider_{operation}_rejected", extra={"payload": payload})
                raise
            log.warning(f"bot_provider_{operation}_retry", extra={"payload": payload})
            if attempt >= attempts:
                raise ProviderError(
                    ErrCode.BOT_PROVIDER_ERROR,
                    f"Провайдер ботов: {operation} не выполнен после retries",
                    details={**context, "attempts": attempts, "last_error": e.message},
                ) from e
            if backoff_sec > 0:
                time.sleep(backoff_sec * attempt)
            attempt += 1


def create_bot_with_retries(
    provisioner: BotProvisioner,
    *,
    meeting_url: str,
    callback_url: str,
    notify_url: str,
) -> BotHandle:
    return _with_retries(
        "create_bot",
        lambda: provisioner.create_bot(meeting_url, callback_url, notify_url),
        context={"meeting_url": meeting_url},
    )


def fetch_transcript_with_retries(provisioner: BotProvisioner, *, bot_id: str) -> Any:
    return _with_retries(
        "fetch_transcript",
        lambda: provisioner.fetch_transcript(bot_id),
        context={"bot_id": bot_id},
    )
