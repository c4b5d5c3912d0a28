"""
Адаптер Recall-совместимого API ботов.

Назначение:
- создание бота для встречи (realtime-транскрипция по WebSocket + вебхук статусов)
- загрузка полного транскрипта после завершения
- удаление бота из звонка
"""

from __future__ import annotations

from typing import Any

import requests

from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.errors import ErrCode, ProviderError, TranscriptNotFoundError
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.connectors.base import BotHandle, BotProvisioner

log = get_project_logger()


class RecallBotConnector(BotProvisioner):
    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_token: str | None = None,
        bot_name: str | None = None,
        timeout_sec: int | None = None,
    ) -> None:
        s = get_settings()
        self.base_url = (base_url or s.recall_api_base or "").rstrip("/")
        self.api_token = (api_token or s.recall_api_token or "").strip()
        self.bot_name = bot_name or s.recall_bot_name
        self.timeout_sec = int(timeout_sec if timeout_sec is not None else s.recall_timeout_sec)

    def _request(self, method: str, path: str, *, payload: dict[str, Any] | None = None) -> Any:
        if not self.base_url:
            raise ProviderError(ErrCode.BOT_PROVIDER_ERROR, "RECALL_API_BASE не настроен")

        url = f"{self.base_url}{path}"
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Token {self.api_token}"

        method = method.upper()
        try:
            resp = requests.request(
                method=method,
                url=url,
                json=payload,
                headers=headers,
                timeout=self.timeout_sec,
            )
            resp.raise_for_status()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            body = e.response.text[:300] if e.response is not None else ""
            # 4xx: запрос отклонён окончательно, повтор даст тот же ответ
            raise ProviderError(
                ErrCode.BOT_PROVIDER_ERROR,
                "Провайдер ботов вернул ошибку",
                details={"status_code": status_code, "body": body, "path": path},
                retryable=status_code is None or status_code >= 500,
            ) from e
        except requests.ConnectionError as e:
            # включая ConnectTimeout: запрос до провайдера не дошёл
            raise ProviderError(
                ErrCode.BOT_PROVIDER_ERROR,
                "Провайдер ботов недоступен",
                details={"err": str(e)[:300], "path": path},
            ) from e
        except requests.RequestException as e:
            # ReadTimeout и прочее: запрос мог быть выполнен, повторяем только GET
            raise ProviderError(
                ErrCode.BOT_PROVIDER_ERROR,
                "Ошибка обращения к API провайдера ботов",
                details={"err": str(e)[:300], "path": path},
                retryable=method == "GET",
            ) from e

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {}

    def create_bot(self, meeting_url: str, callback_url: str, notify_url: str) -> BotHandle:
        payload = {
            "meeting_url": meeting_url,
            "bot_name": self.bot_name,
            "recording_config": {"transcript": {"provider": {"meeting_captions": {}}}},
            "real_time_media": {"websocket_transcription_url": callback_url},
            "webhook_url": notify_url,
        }
        data = self._request("POST", "/bot/", payload=payload)
        bot_id = str(data.get("id") or "").strip() if isinstance(data, dict) else ""
        if not bot_id:
            raise ProviderError(
                ErrCode.BOT_PROVIDER_ERROR,
                "Провайдер ботов не вернул id бота",
                details={"keys": sorted(data) if isinstance(data, dict) else []},
                retryable=False,
            )

        log.info("recall_create_bot_ok", extra={"payload": {"bot_id": bot_id}})
        return BotHandle(bot_id=bot_id, raw=data)

    def fetch_transcript(self, bot_id: str) -> Any:
        try:
            data = self._request("GET", f"/bot/{bot_id}/transcript/")
        except ProviderError as e:
            if (e.details or {}).get("status_code") == 404:
                raise TranscriptNotFoundError(details={"bot_id": bot_id}) from e
            raise
        log.info("recall_fetch_transcript_ok", extra={"payload": {"bot_id": bot_id}})
        return data

    def remove_bot(self, bot_id: str) -> None:
        self._request("POST", f"/bot/{bot_id}/leave_call/")
        log.info("recall_remove_bot_ok", extra={"payload": {"bot_id": bot_id}})
