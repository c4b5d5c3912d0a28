"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- HTTP API создания/чтения встреч
- webhook статусов бота
- WebSocket для приёма реплик от бота

Архитектурно:
- хэндл БД и gateway создаются на старте процесса и лежат в app.state
- синхронная работа с БД из WS уходит в поток (asyncio.to_thread)
"""

from __future__ import annotations

from typing import Any

import uvicorn
from fastapi import FastAPI

from apps.api_gateway.routers.meetings import router as meetings_router
from apps.api_gateway.routers.webhooks import router as webhooks_router
from apps.api_gateway.ws import ws_router
from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.logging import get_project_logger, setup_logging
from meeting_bot_agent.common.metrics import setup_metrics_endpoint
from meeting_bot_agent.connectors.base import BotProvisioner
from meeting_bot_agent.services.ingestion_gateway import build_ingestion_gateway
from meeting_bot_agent.storage.db import Database

log = get_project_logger()


def create_app(
    db: Database | None = None,
    provisioner: BotProvisioner | None = None,
) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Meeting Bot Agent", version="0.1.0")

    setup_metrics_endpoint(app, service=settings.service_name)

    @app.on_event("startup")
    def startup() -> None:
        database = db or Database()
        app.state.owns_db = db is None
        if database.is_sqlite or settings.db_auto_create:
            # Автосоздание таблиц в dev (чтобы проект стартовал без ручных миграций)
            database.create_all()
        app.state.db = database
        app.state.gateway = build_ingestion_gateway(database, provisioner)
        log.info("api_gateway_started", extra={"payload": {"service": settings.service_name}})

    @app.on_event("shutdown")
    def shutdown() -> None:
        database = getattr(app.state, "db", None)
        if database is not None and getattr(app.state, "owns_db", False):
            database.close()
        log.info("api_gateway_stopped")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "healthy", "service": settings.service_name}

    app.include_router(meetings_router, prefix="/v1")
    app.include_router(webhooks_router, prefix="/v1")
    app.include_router(ws_router, prefix="/v1")

    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)


setup_logging()

app = create_app()


if __name__ == "__main__":
    run()
