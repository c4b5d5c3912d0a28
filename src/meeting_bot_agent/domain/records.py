"""
Типизированные записи сущностей.

Назначение:
- между компонентами ходят эти объекты, а не ORM-строки/словари
- ORM-объект живёт только внутри транзакции репозитория
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .enums import MeetingStatus

if TYPE_CHECKING:
    from meeting_bot_agent.storage.models import Block, BlockAttendee, BlockMeeting, Turn


@dataclass(frozen=True)
class SessionRecord:
    block_id: str
    name: str
    description: str | None
    block_type: str
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_orm(cls, row: Block) -> SessionRecord:
        return cls(
            block_id=row.block_id,
            name=row.name,
            description=row.description,
            block_type=str(getattr(row.block_type, "value", row.block_type)),
            metadata=dict(row.meta or {}),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass(frozen=True)
class MeetingRecord:
    block_id: str
    bot_id: str
    meeting_url: str
    status: MeetingStatus
    invited_by_user_id: int | None
    full_transcript: Any | None
    started_at: datetime
    ended_at: datetime | None
    updated_at: datetime
    transcript_fetch_attempts: int = 0
    transcript_unavailable: bool = False

    @classmethod
    def from_orm(cls, row: BlockMeeting) -> MeetingRecord:
        return cls(
            block_id=row.block_id,
            bot_id=row.bot_id,
            meeting_url=row.meeting_url,
            status=MeetingStatus(row.status),
            invited_by_user_id=row.invited_by_user_id,
            full_transcript=row.full_transcript,
            started_at=row.started_at,
            ended_at=row.ended_at,
            updated_at=row.updated_at,
            transcript_fetch_attempts=int(row.transcript_fetch_attempts or 0),
            transcript_unavailable=bool(row.transcript_unavailable),
        )


@dataclass(frozen=True)
class AttendeeRecord:
    id: int
    block_id: str
    name: str
    user_id: int | None
    story: str | None
    speaking_time_seconds: int

    @classmethod
    def from_orm(cls, row: BlockAttendee) -> AttendeeRecord:
        return cls(
            id=row.id,
            block_id=row.block_id,
            name=row.name,
            user_id=row.user_id,
            story=row.story,
            speaking_time_seconds=int(row.speaking_time_seconds or 0),
        )


@dataclass(frozen=True)
class TurnRecord:
    turn_id: str
    block_id: str
    attendee_id: int | None
    content: str
    source_type: str
    position: int
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    speaker: str | None = None

    @classmethod
    def from_orm(
        cls, row: Turn, *, block_id: str, position: int, speaker: str | None = None
    ) -> TurnRecord:
        return cls(
            turn_id=row.turn_id,
            block_id=block_id,
            attendee_id=row.attendee_id,
            content=row.content,
            source_type=row.source_type,
            position=position,
            created_at=row.created_at,
            metadata=dict(row.meta or {}),
            speaker=speaker,
        )


@dataclass(frozen=True)
class CreatedSession:
    session: SessionRecord
    meeting: MeetingRecord


@dataclass(frozen=True)
class LifecycleOutcome:
    """
    Итог применения lifecycle-события.
    result: applied | noop | ignored | not_found | duplicate
    """

    bot_id: str
    result: str
    status: MeetingStatus | None = None
    reason: str | None = None
    transcript_stored: bool = False
