"""
Доменные перечисления (enum).

Используются во всей системе:
- статус встречи (жизненный цикл бота)
- источник реплики
- тип блока (сессии)
"""

from __future__ import annotations

import enum


class MeetingStatus(str, enum.Enum):
    """
    Статус бота во встрече.
    joining -> in_progress -> {completed, failed}
    """

    joining = "joining"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class TurnSource(str, enum.Enum):
    """
    Откуда пришла реплика. Сейчас только realtime-поток бота.
    """

    live_capture = "live_capture"


class BlockType(str, enum.Enum):
    """
    Тип блока (контейнера разговора).
    """

    meeting = "meeting"
    session = "session"
