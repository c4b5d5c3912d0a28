"""
Общие утилиты проекта.

Правила:
- сюда кладём только реально общие функции
- без бизнес-логики
"""

from __future__ import annotations

from typing import Any


def safe_dict(d: dict[str, Any], max_len: int = 500) -> dict[str, Any]:
    """
    Безопасное "обрезание" полей для логов (чтобы не утащить большие тексты).
    """
    out: dict[str, Any] = {}
    for k, v in d.items():
        if isinstance(v, str) and len(v) > max_len:
            out[k] = v[:max_len] + "...(truncated)"
        else:
            out[k] = v
    return out


def join_url(base: str, path: str) -> str:
    """
    base + path без двойных слэшей.
    """
    return f"{(base or '').rstrip('/')}/{(path or '').lstrip('/')}"


def to_ws_url(http_url: str) -> str:
    """
    http(s)://host -> ws(s)://host
    """
    url = (http_url or "").strip()
    if url.startswith("https://"):
        return "wss://" + url[len("https://") :]
    if url.startswith("http://"):
        return "ws://" + url[len("http://") :]
    return url
