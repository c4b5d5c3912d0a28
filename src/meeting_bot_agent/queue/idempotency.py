"""
Идемпотентность (дедупликация) входящих событий.

Зачем нужно:
- провайдер доставляет вебхуки at-least-once
- повторную доставку того же event_id не гоняем через БД ещё раз

Реализация:
- backend=memory: in-process словарь с TTL (dev/тесты/один процесс)
- backend=redis: SET NX с TTL (несколько реплик gateway)
- ключ формируется как "idem:<scope>:<subject>:<idempotency_key>"
"""

from __future__ import annotations

import threading
import time

from meeting_bot_agent.common.config import get_settings

from .redis import redis_client

_LOCAL_IDEM_KEYS: dict[str, float] = {}
_LOCAL_LOCK = threading.Lock()

# TTL по умолчанию (сек) для идемпотентных ключей
DEFAULT_TTL_SEC = 60 * 60 * 24  # 24 часа


def _key(scope: str, subject: str, idem_key: str) -> str:
    return f"idem:{scope}:{subject}:{idem_key}"


def _use_memory() -> bool:
    return (get_settings().idempotency_backend or "").strip().lower() != "redis"


def check_and_set(scope: str, subject: str, idem_key: str, ttl_sec: int | None = None) -> bool:
    """
    Возвращает True, если ключ НОВЫЙ (т.е. можно обрабатывать),
    и False, если ключ уже был (дедуп).
    """
    ttl = max(1, int(ttl_sec or get_settings().idempotency_ttl_sec or DEFAULT_TTL_SEC))
    key = _key(scope, subject, idem_key)
    if _use_memory():
        now = time.monotonic()
        with _LOCAL_LOCK:
            expires = _LOCAL_IDEM_KEYS.get(key, 0.0)
            if expires > now:
                return False
            _LOCAL_IDEM_KEYS[key] = now + ttl
            if len(_LOCAL_IDEM_KEYS) > 20_000:
                for k, exp in list(_LOCAL_IDEM_KEYS.items()):
                    if exp <= now:
                        _LOCAL_IDEM_KEYS.pop(k, None)
        return True

    ok = redis_client().set(name=key, value="1", nx=True, ex=ttl)
    return bool(ok)


def release(scope: str, subject: str, idem_key: str) -> None:
    """
    Снимает ключ: событие не обработано, повторная доставка должна пройти.
    """
    key = _key(scope, subject, idem_key)
    if _use_memory():
        with _LOCAL_LOCK:
            _LOCAL_IDEM_KEYS.pop(key, None)
        return
    redis_client().delete(key)
