"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP/WS/webhook
- единый стиль исключений по проекту

Таксономия:
- NotFound      : сессия/встреча/участник отсутствует (восстановимо)
- Validation    : пустой текст реплики, нет meeting_url (до любой записи)
- Provider      : провайдер ботов не ответил / таймаут; retryable=False для 4xx и read timeout
- TranscriptNotFound : провайдер ответил 404 на транскрипт (не повторяется)
- Conflict      : гонка по уникальному ключу, наружу не выходит (перечитывание)
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    VALIDATION = "validation"
    NOT_FOUND = "not_found"

    # Транскрипт
    INVALID_TURN = "invalid_turn"
    SESSION_NOT_FOUND = "session_not_found"
    MEETING_NOT_FOUND = "meeting_not_found"

    # Создание сессии
    SESSION_CREATE_FAILED = "session_create_failed"

    # Провайдеры
    BOT_PROVIDER_ERROR = "bot_provider_error"
    TRANSCRIPT_NOT_FOUND = "transcript_not_found"


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение
    - details: доп. данные (без секретов/PII)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "Ошибка валидации", details: dict | None = None) -> None:
        super().__init__(ErrCode.VALIDATION, message, details)


class InvalidTurnError(AppError):
    def __init__(self, message: str = "Пустой текст реплики", details: dict | None = None) -> None:
        super().__init__(ErrCode.INVALID_TURN, message, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Не найдено", details: dict | None = None) -> None:
        super().__init__(ErrCode.NOT_FOUND, message, details)


class SessionNotFoundError(NotFoundError):
    def __init__(self, message: str = "Сессия не найдена", details: dict | None = None) -> None:
        super().__init__(message, details)
        self.code = ErrCode.SESSION_NOT_FOUND


class MeetingNotFoundError(NotFoundError):
    def __init__(self, message: str = "Встреча не найдена", details: dict | None = None) -> None:
        super().__init__(message, details)
        self.code = ErrCode.MEETING_NOT_FOUND


class ProviderError(AppError):
    """
    retryable=False: повтор запроса бессмыслен или небезопасен
    (4xx, таймаут чтения после отправки POST).
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: dict | None = None,
        *,
        retryable: bool = True,
    ) -> None:
        super().__init__(code, message, details)
        self.retryable = retryable


class TranscriptNotFoundError(NotFoundError):
    def __init__(
        self, message: str = "Транскрипт у провайдера не найден", details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.code = ErrCode.TRANSCRIPT_NOT_FOUND


class SessionCreateError(AppError):
    """
    Ошибка создания сессии с указанием стадии: provisioning | persistence.
    """

    def __init__(self, stage: str, message: str, details: dict | None = None) -> None:
        super().__init__(ErrCode.SESSION_CREATE_FAILED, message, details)
        self.stage = stage
