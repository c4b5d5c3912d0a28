"""
HTTP роуты для встреч.

- POST /v1/meetings/bot              : отправить бота во встречу
- GET  /v1/meetings/{block_id}       : сессия + встреча + участники
- GET  /v1/meetings/{block_id}/turns : транскрипт по порядку
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from apps.api_gateway.deps import gateway_dep, http_error
from meeting_bot_agent.common.errors import AppError
from meeting_bot_agent.contracts.http_api import (
    AttendeeOut,
    CreateBotRequest,
    CreateBotResponse,
    MeetingGetResponse,
    MeetingOut,
    SessionOut,
    TurnOut,
    TurnsResponse,
)
from meeting_bot_agent.services.ingestion_gateway import IngestionGateway

router = APIRouter()


@router.post(
    "/meetings/bot",
    response_model=CreateBotResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_meeting_bot(
    req: CreateBotRequest,
    gateway: IngestionGateway = Depends(gateway_dep),
) -> CreateBotResponse:
    try:
        created = gateway.handle_create_request(req)
    except AppError as e:
        raise http_error(e) from e
    return CreateBotResponse.from_created(created)


@router.get("/meetings/{block_id}", response_model=MeetingGetResponse)
def get_meeting(
    block_id: str,
    gateway: IngestionGateway = Depends(gateway_dep),
) -> MeetingGetResponse:
    try:
        view = gateway.get_session(block_id)
    except AppError as e:
        raise http_error(e) from e
    return MeetingGetResponse(
        meeting_block=SessionOut.from_record(view.session),
        meeting=MeetingOut.from_record(view.meeting) if view.meeting else None,
        attendees=[AttendeeOut.from_record(a) for a in view.attendees],
    )


@router.get("/meetings/{block_id}/turns", response_model=TurnsResponse)
def get_meeting_turns(
    block_id: str,
    gateway: IngestionGateway = Depends(gateway_dep),
) -> TurnsResponse:
    try:
        turns = gateway.list_turns(block_id)
    except AppError as e:
        raise http_error(e) from e
    return TurnsResponse(block_id=block_id, turns=[TurnOut.from_record(t) for t in turns])
