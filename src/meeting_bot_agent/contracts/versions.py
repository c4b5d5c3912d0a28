"""
Версии контрактов (HTTP/WS/webhook).

Назначение:
- единая точка истинных версий
- удобная проверка совместимости
"""

from __future__ import annotations

HTTP_API_VERSION = "v1"
WS_SCHEMA_VERSION = "v1"
