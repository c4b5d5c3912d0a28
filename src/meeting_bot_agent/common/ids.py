"""
Генерация идентификаторов.

Назначение:
- block_id / turn_id (UUID)
"""

from __future__ import annotations

import uuid


def new_uuid() -> str:
    """UUIDv4 строкой."""
    return str(uuid.uuid4())
