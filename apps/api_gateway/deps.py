"""
FastAPI Depends.

Сюда выносим:
- доступ к IngestionGateway из app.state
- перевод ошибок приложения в HTTPException
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from meeting_bot_agent.common.errors import AppError, ErrCode
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.services.ingestion_gateway import IngestionGateway

log = get_project_logger()

_STATUS_BY_CODE = {
    ErrCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrCode.INVALID_TURN: status.HTTP_400_BAD_REQUEST,
    ErrCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrCode.MEETING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrCode.TRANSCRIPT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrCode.BOT_PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
}

_STATUS_BY_STAGE = {
    "provisioning": status.HTTP_502_BAD_GATEWAY,
    "persistence": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def gateway_dep(request: Request) -> IngestionGateway:
    return request.app.state.gateway


def http_error(e: AppError) -> HTTPException:
    stage = getattr(e, "stage", None)
    if stage is not None:
        code = _STATUS_BY_STAGE.get(stage, status.HTTP_500_INTERNAL_SERVER_ERROR)
    else:
        code = _STATUS_BY_CODE.get(e.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail = {"code": e.code, "message": e.message, "details": e.details or {}}
    if stage is not None:
        detail["stage"] = stage
    log.warning(
        "http_request_failed",
        extra={"payload": {"status_code": code, **detail}},
    )
    return HTTPException(status_code=code, detail=detail)
