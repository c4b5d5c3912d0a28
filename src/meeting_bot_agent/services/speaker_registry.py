"""
Реестр спикеров.

Назначение:
- метка спикера в рамках блока -> стабильный участник (BlockAttendee)
- ленивое создание участника при первой реплике

Конкурентность: без блокировок в приложении. Уникальный индекс
(block_id, name) + вставка с терпимостью к конфликту.
"""

from __future__ import annotations

from meeting_bot_agent.common.errors import SessionNotFoundError
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.domain.records import AttendeeRecord
from meeting_bot_agent.storage.db import Database
from meeting_bot_agent.storage.models import BlockAttendee
from meeting_bot_agent.storage.repositories import AttendeeRepository, BlockRepository

log = get_project_logger()

UNKNOWN_SPEAKER = "Unknown speaker"
STORY_TEMPLATE = "{name} joined the meeting."


def normalize_speaker_label(label: str | None) -> str:
    name = " ".join((label or "").split())
    return name or UNKNOWN_SPEAKER


class SpeakerRegistry:
    def __init__(self, db: Database) -> None:
        self.db = db

    def resolve_attendee(self, block_id: str, speaker_label: str | None) -> AttendeeRecord:
        name = normalize_speaker_label(speaker_label)

        with self.db.session() as s:
            repo = AttendeeRepository(s)
            existing = repo.get_by_name(block_id, name)
            if existing is not None:
                return AttendeeRecord.from_orm(existing)

            if BlockRepository(s).get(block_id) is None:
                raise SessionNotFoundError(details={"block_id": block_id})

            attendee, created = repo.insert_if_absent(
                BlockAttendee(
                    block_id=block_id,
                    name=name,
                    user_id=None,
                    story=STORY_TEMPLATE.format(name=name),
                    speaking_time_seconds=0,
                )
            )
            s.flush()
            if created:
                log.info(
                    "attendee_created",
                    extra={"payload": {"block_id": block_id, "attendee_id": attendee.id}},
                )
            else:
                log.info(
                    "attendee_conflict_resolved",
                    extra={"payload": {"block_id": block_id, "attendee_id": attendee.id}},
                )
            return AttendeeRecord.from_orm(attendee)
