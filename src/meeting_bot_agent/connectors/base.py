"""
Базовые интерфейсы коннекторов (интеграция с провайдером ботов).

Назначение:
- стандартизировать адаптеры к платформе ботов-участников звонков
- отделить "как заводим бота" от "что делаем с репликами дальше"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class BotHandle:
    """
    Результат создания бота.
    """

    bot_id: str
    raw: dict[str, Any] = field(default_factory=dict)


class BotProvisioner(Protocol):
    """
    Контракт провайдера ботов.

    Ошибки сети/таймауты -> ProviderError.
    """

    def create_bot(self, meeting_url: str, callback_url: str, notify_url: str) -> BotHandle:
        """Отправить бота во встречу: реплики на callback_url, статусы на notify_url."""
        ...

    def fetch_transcript(self, bot_id: str) -> Any:
        """Полный транскрипт встречи после завершения."""
        ...

    def remove_bot(self, bot_id: str) -> None:
        """Убрать бота из встречи."""
        ...
