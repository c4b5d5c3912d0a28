"""
WebSocket обработчик realtime-потока реплик.

Протокол:
- бот присылает JSON-объекты реплик: {"bot_id", "speaker", "text", "timestamp", ...}
- ответ на каждую реплику: {"event_type": "turn.ack", "result": ..., "position": ...}
- ошибка одной реплики не закрывает соединение

Важно:
- запись в БД синхронная, поэтому уходит в поток (asyncio.to_thread)
- порядок реплик внутри соединения сохраняется: следующая читается после записи предыдущей
"""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from meeting_bot_agent.common.errors import AppError
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.common.metrics import WS_CONNECTIONS_ACTIVE, record_turn
from meeting_bot_agent.common.utils import safe_dict
from meeting_bot_agent.contracts.events import TurnEvent
from meeting_bot_agent.contracts.versions import WS_SCHEMA_VERSION
from meeting_bot_agent.services.ingestion_gateway import IngestionGateway

log = get_project_logger()

ws_router = APIRouter()


def _error(code: str, message: str) -> str:
    return json.dumps(
        {
            "schema_version": WS_SCHEMA_VERSION,
            "event_type": "error",
            "code": code,
            "message": message,
        },
        ensure_ascii=False,
    )


@ws_router.websocket("/transcript")
async def transcript_endpoint(ws: WebSocket) -> None:
    gateway: IngestionGateway = ws.app.state.gateway
    await ws.accept()
    WS_CONNECTIONS_ACTIVE.inc()

    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                record_turn("dropped")
                await ws.send_text(_error("bad_json", "Невалидный JSON"))
                continue

            try:
                ev = TurnEvent.model_validate(data)
            except PydanticValidationError as e:
                record_turn("dropped")
                log.warning(
                    "ws_bad_turn_event",
                    extra={
                        "payload": {
                            "event": safe_dict(data) if isinstance(data, dict) else None,
                            "err": str(e)[:200],
                        }
                    },
                )
                await ws.send_text(_error("bad_event", "Невалидная реплика"))
                continue

            try:
                outcome = await asyncio.to_thread(gateway.handle_turn_event, ev)
            except AppError as e:
                record_turn("failed")
                log.error(
                    "ws_turn_failed",
                    extra={"payload": {"bot_id": ev.bot_id, "code": e.code, "err": e.message}},
                )
                await ws.send_text(_error(e.code, e.message))
                continue
            except Exception as e:
                record_turn("failed")
                log.error(
                    "ws_turn_failed",
                    extra={"payload": {"bot_id": ev.bot_id, "err": str(e)[:200]}},
                )
                await ws.send_text(_error("storage_error", "Ошибка записи реплики"))
                continue

            await ws.send_text(
                json.dumps(
                    {
                        "schema_version": WS_SCHEMA_VERSION,
                        "event_type": "turn.ack",
                        "bot_id": outcome.bot_id,
                        "result": outcome.result,
                        "reason": outcome.reason,
                        "position": outcome.turn.position if outcome.turn else None,
                    },
                    ensure_ascii=False,
                )
            )
    except WebSocketDisconnect:
        pass
    finally:
        WS_CONNECTIONS_ACTIVE.dec()
