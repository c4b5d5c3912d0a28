"""
Машина состояний встречи (жизненный цикл бота).

Назначение:
- централизованные правила переходов статуса
- нормализация кодов статуса провайдера
- идемпотентность и защита от out-of-order доставки вебхуков
"""

from __future__ import annotations

from dataclasses import dataclass

from meeting_bot_agent.common.errors import ValidationError

from .enums import MeetingStatus

# =============================================================================
# НОРМАЛИЗАЦИЯ СТАТУСОВ ПРОВАЙДЕРА
# =============================================================================
_STATUS_ALIASES: dict[str, MeetingStatus] = {
    "joining": MeetingStatus.joining,
    "joining_call": MeetingStatus.joining,
    "in_waiting_room": MeetingStatus.joining,
    "ready": MeetingStatus.joining,
    "in_progress": MeetingStatus.in_progress,
    "in_call_not_recording": MeetingStatus.in_progress,
    "in_call_recording": MeetingStatus.in_progress,
    "recording": MeetingStatus.in_progress,
    "completed": MeetingStatus.completed,
    "done": MeetingStatus.completed,
    "call_ended": MeetingStatus.completed,
    "failed": MeetingStatus.failed,
    "fatal": MeetingStatus.failed,
}

_TERMINAL = {MeetingStatus.completed, MeetingStatus.failed}

_RANK = {
    MeetingStatus.joining: 0,
    MeetingStatus.in_progress: 1,
    MeetingStatus.completed: 2,
    MeetingStatus.failed: 2,
}


def parse_status(raw: str | MeetingStatus | None) -> MeetingStatus:
    """
    Строка статуса (в т.ч. код провайдера) -> MeetingStatus.
    Неизвестный статус -> ValidationError.
    """
    if isinstance(raw, MeetingStatus):
        return raw
    key = (raw or "").strip().lower()
    status = _STATUS_ALIASES.get(key)
    if status is None:
        raise ValidationError(
            "Неизвестный статус встречи",
            details={"status": raw, "allowed": sorted(_STATUS_ALIASES)},
        )
    return status


def is_terminal(status: MeetingStatus) -> bool:
    return status in _TERMINAL


# =============================================================================
# РЕЗУЛЬТАТ ПЕРЕХОДА
# =============================================================================
@dataclass
class TransitionResult:
    apply: bool
    status: MeetingStatus
    reason: str | None = None


def transition(current: MeetingStatus, requested: MeetingStatus) -> TransitionResult:
    """
    Правила перехода:
    - тот же статус          → no-op (повторная доставка)
    - из терминального       → игнорируем
    - назад по жизненному циклу → игнорируем (устаревшее событие)
    - иначе                  → применяем
    """
    if requested == current:
        return TransitionResult(apply=False, status=current, reason="same_status")

    if is_terminal(current):
        return TransitionResult(apply=False, status=current, reason="already_terminal")

    if _RANK[requested] < _RANK[current]:
        return TransitionResult(apply=False, status=current, reason="stale_event")

    return TransitionResult(apply=True, status=requested)
