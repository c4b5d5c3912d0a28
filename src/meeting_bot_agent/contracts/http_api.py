"""
HTTP API контракты (Pydantic-модели).

Назначение:
- валидация входа/выхода на уровне FastAPI
- стабильные структуры для клиентов
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from meeting_bot_agent.domain.records import (
    AttendeeRecord,
    CreatedSession,
    MeetingRecord,
    SessionRecord,
    TurnRecord,
)

from .versions import HTTP_API_VERSION


# =============================================================================
# ЗАПРОСЫ
# =============================================================================
class CreateBotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meeting_url: str | None = Field(
        default=None, validation_alias=AliasChoices("meeting_url", "meetingUrl")
    )
    requested_by: int | None = Field(
        default=None,
        validation_alias=AliasChoices("requested_by", "requestedBy", "client_id"),
    )
    display_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("display_name", "displayName", "meeting_name"),
    )


# =============================================================================
# ОТВЕТЫ
# =============================================================================
class SessionOut(BaseModel):
    block_id: str
    name: str
    description: str | None = None
    block_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, r: SessionRecord) -> SessionOut:
        return cls(
            block_id=r.block_id,
            name=r.name,
            description=r.description,
            block_type=r.block_type,
            metadata=r.metadata,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )


class MeetingOut(BaseModel):
    block_id: str
    bot_id: str
    meeting_url: str
    status: str
    invited_by_user_id: int | None = None
    full_transcript: Any | None = None
    started_at: datetime
    ended_at: datetime | None = None
    transcript_unavailable: bool = False

    @classmethod
    def from_record(cls, r: MeetingRecord) -> MeetingOut:
        return cls(
            block_id=r.block_id,
            bot_id=r.bot_id,
            meeting_url=r.meeting_url,
            status=r.status.value,
            invited_by_user_id=r.invited_by_user_id,
            full_transcript=r.full_transcript,
            started_at=r.started_at,
            ended_at=r.ended_at,
            transcript_unavailable=r.transcript_unavailable,
        )


class AttendeeOut(BaseModel):
    id: int
    name: str
    user_id: int | None = None
    story: str | None = None
    speaking_time_seconds: int = 0

    @classmethod
    def from_record(cls, r: AttendeeRecord) -> AttendeeOut:
        return cls(
            id=r.id,
            name=r.name,
            user_id=r.user_id,
            story=r.story,
            speaking_time_seconds=r.speaking_time_seconds,
        )


class TurnOut(BaseModel):
    turn_id: str
    position: int
    speaker: str | None = None
    content: str
    source_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_record(cls, r: TurnRecord) -> TurnOut:
        return cls(
            turn_id=r.turn_id,
            position=r.position,
            speaker=r.speaker,
            content=r.content,
            source_type=r.source_type,
            metadata=r.metadata,
            created_at=r.created_at,
        )


class CreateBotResponse(BaseModel):
    api_version: str = Field(default=HTTP_API_VERSION)
    meeting_block: SessionOut
    meeting: MeetingOut

    @classmethod
    def from_created(cls, created: CreatedSession) -> CreateBotResponse:
        return cls(
            meeting_block=SessionOut.from_record(created.session),
            meeting=MeetingOut.from_record(created.meeting),
        )


class MeetingGetResponse(BaseModel):
    api_version: str = Field(default=HTTP_API_VERSION)
    meeting_block: SessionOut
    meeting: MeetingOut | None = None
    attendees: list[AttendeeOut] = Field(default_factory=list)


class TurnsResponse(BaseModel):
    api_version: str = Field(default=HTTP_API_VERSION)
    block_id: str
    turns: list[TurnOut] = Field(default_factory=list)


class LifecycleAck(BaseModel):
    api_version: str = Field(default=HTTP_API_VERSION)
    bot_id: str
    result: str
    status: str | None = None
    reason: str | None = None
