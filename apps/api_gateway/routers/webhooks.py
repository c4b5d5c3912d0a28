"""
Webhook статусов бота.

POST /v1/webhooks/bot-status
Провайдер доставляет at-least-once и без гарантии порядка:
повтор и устаревший статус отвечают 200 без изменения состояния.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from apps.api_gateway.deps import gateway_dep, http_error
from meeting_bot_agent.common.errors import AppError
from meeting_bot_agent.contracts.events import LifecycleEvent
from meeting_bot_agent.contracts.http_api import LifecycleAck
from meeting_bot_agent.services.ingestion_gateway import IngestionGateway

router = APIRouter()


@router.post("/webhooks/bot-status", response_model=LifecycleAck)
def bot_status_webhook(
    ev: LifecycleEvent,
    gateway: IngestionGateway = Depends(gateway_dep),
) -> LifecycleAck:
    try:
        outcome = gateway.handle_lifecycle_event(ev)
    except AppError as e:
        raise http_error(e) from e
    return LifecycleAck(
        bot_id=outcome.bot_id,
        result=outcome.result,
        status=outcome.status.value if outcome.status else None,
        reason=outcome.reason,
    )
