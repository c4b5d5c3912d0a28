"""
Контракты входящих событий от бота (Pydantic).

- TurnEvent: реплика из realtime-потока (WebSocket)
- LifecycleEvent: уведомление о смене статуса бота (webhook)

Имена полей принимаются в snake_case и camelCase.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class TurnEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    bot_id: str = Field(validation_alias=AliasChoices("bot_id", "botId"))
    speaker: str | None = Field(
        default=None, validation_alias=AliasChoices("speaker", "speaker_label", "speakerLabel")
    )
    text: str = Field(default="", validation_alias=AliasChoices("text", "content"))
    timestamp: str | float | None = None
    # Подсказка порядка от бота: сохраняется в metadata, порядок не задаёт
    sequence: int | None = Field(
        default=None, validation_alias=AliasChoices("sequence", "sequence_hint", "sequenceHint")
    )


class LifecycleEvent(BaseModel):
    """
    Плоский формат: {"bot_id": ..., "status": ..., "timestamp": ...}
    Вложенный формат провайдера:
        {"event": "bot.status_change",
         "data": {"bot_id": ..., "status": {"code": ..., "created_at": ...}}}
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    bot_id: str = Field(validation_alias=AliasChoices("bot_id", "botId"))
    status: str
    timestamp: str | float | None = None
    event_id: str | None = Field(
        default=None, validation_alias=AliasChoices("event_id", "eventId", "id")
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_provider_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "data" not in data:
            return data
        inner = data.get("data")
        if not isinstance(inner, dict):
            return data
        out = dict(data)
        out.pop("data", None)
        bot = inner.get("bot")
        out.setdefault("bot_id", inner.get("bot_id") or (bot or {}).get("id"))
        status = inner.get("status")
        if isinstance(status, dict):
            out.setdefault("status", status.get("code"))
            out.setdefault("timestamp", status.get("created_at"))
        elif status is not None:
            out.setdefault("status", status)
        return out
