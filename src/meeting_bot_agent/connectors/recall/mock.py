"""
Mock-провайдер ботов для dev/тестов.

Назначение:
- позволить гонять сервис без реального провайдера
"""

from __future__ import annotations

from typing import Any

from meeting_bot_agent.common.ids import new_uuid
from meeting_bot_agent.connectors.base import BotHandle, BotProvisioner


class MockRecallBotConnector(BotProvisioner):
    def __init__(self) -> None:
        self.bots: dict[str, dict[str, Any]] = {}

    def create_bot(self, meeting_url: str, callback_url: str, notify_url: str) -> BotHandle:
        bot_id = new_uuid()
        data = {
            "id": bot_id,
            "meeting_url": meeting_url,
            "real_time_media": {"websocket_transcription_url": callback_url},
            "webhook_url": notify_url,
        }
        self.bots[bot_id] = data
        return BotHandle(bot_id=bot_id, raw=data)

    def fetch_transcript(self, bot_id: str) -> Any:
        return [{"speaker": "MockUser", "words": [{"text": "mock transcript"}]}]

    def remove_bot(self, bot_id: str) -> None:
        self.bots.pop(bot_id, None)
