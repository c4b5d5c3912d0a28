"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
- отсутствие записи -> None (не исключение)
- upsert_*: insert; если ключ уже есть: обновляем изменяемые поля
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from meeting_bot_agent.domain.enums import MeetingStatus

from .models import Block, BlockAttendee, BlockMeeting, BlockTurn, Turn


# =============================================================================
# BLOCK REPOSITORY
# =============================================================================
class BlockRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, block_id: str) -> Block | None:
        return self.session.get(Block, block_id)

    def get_for_update(self, block_id: str) -> Block | None:
        """
        Блокирует строку блока до конца транзакции (SELECT ... FOR NO KEY UPDATE).
        Граница сериализации записей в транскрипт одного блока.
        Ключ блока не меняется, поэтому FK-проверки вставок (FOR KEY SHARE)
        на этой блокировке не ждут.
        """
        stmt = select(Block).where(Block.block_id == block_id).with_for_update(key_share=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, block: Block) -> Block:
        existing = self.get(block.block_id) if block.block_id else None
        if existing is None:
            self.session.add(block)
            self.session.flush()
            return block

        existing.name = block.name
        existing.description = block.description
        existing.block_type = block.block_type
        existing.meta = dict(block.meta or {})
        self.session.flush()
        return existing

    def delete(self, block_id: str) -> bool:
        block = self.get(block_id)
        if block is None:
            return False
        self.session.delete(block)
        self.session.flush()
        return True


# =============================================================================
# MEETING REPOSITORY
# =============================================================================
class MeetingRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, block_id: str) -> BlockMeeting | None:
        return self.session.get(BlockMeeting, block_id)

    def get_by_bot_id(self, bot_id: str, *, for_update: bool = False) -> BlockMeeting | None:
        stmt = select(BlockMeeting).where(BlockMeeting.bot_id == bot_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, meeting: BlockMeeting) -> BlockMeeting:
        """
        Ключ: block_id. bot_id после создания не меняется.
        """
        existing = self.get(meeting.block_id)
        if existing is None:
            self.session.add(meeting)
            self.session.flush()
            return meeting

        existing.meeting_url = meeting.meeting_url
        existing.status = meeting.status
        existing.invited_by_user_id = meeting.invited_by_user_id
        existing.full_transcript = meeting.full_transcript
        existing.ended_at = meeting.ended_at
        existing.transcript_fetch_attempts = meeting.transcript_fetch_attempts
        existing.transcript_unavailable = meeting.transcript_unavailable
        self.session.flush()
        return existing

    def list_completed_without_transcript(self, *, limit: int = 50) -> list[BlockMeeting]:
        """
        Встречи, помеченные transcript_unavailable, пропускаются.
        Сначала идут встречи с меньшим числом неудачных попыток.
        """
        stmt = (
            select(BlockMeeting)
            .where(
                BlockMeeting.status == MeetingStatus.completed,
                BlockMeeting.full_transcript.is_(None),
                BlockMeeting.transcript_unavailable.is_(False),
            )
            .order_by(BlockMeeting.transcript_fetch_attempts, BlockMeeting.ended_at)
            .limit(max(1, min(limit, 500)))
        )
        return list(self.session.execute(stmt).scalars())


# =============================================================================
# ATTENDEE REPOSITORY
# =============================================================================
class AttendeeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, attendee_id: int) -> BlockAttendee | None:
        return self.session.get(BlockAttendee, attendee_id)

    def get_by_name(self, block_id: str, name: str) -> BlockAttendee | None:
        stmt = select(BlockAttendee).where(
            BlockAttendee.block_id == block_id,
            BlockAttendee.name == name,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def insert_if_absent(self, attendee: BlockAttendee) -> tuple[BlockAttendee, bool]:
        """
        Вставка с терпимостью к конфликту по (block_id, name).
        Возвращает (участник, создан_ли).

        Конкурентная вставка того же имени ловится уникальным индексом:
        откатываем SAVEPOINT и перечитываем существующую строку.
        """
        try:
            with self.session.begin_nested():
                self.session.add(attendee)
            return attendee, True
        except IntegrityError:
            existing = self.get_by_name(attendee.block_id, attendee.name)
            if existing is None:
                raise
            return existing, False

    def upsert(self, attendee: BlockAttendee) -> BlockAttendee:
        existing = self.get_by_name(attendee.block_id, attendee.name)
        if existing is None:
            created, _ = self.insert_if_absent(attendee)
            return created

        existing.user_id = attendee.user_id
        existing.story = attendee.story
        existing.speaking_time_seconds = attendee.speaking_time_seconds
        self.session.flush()
        return existing

    def list_by_block(self, block_id: str) -> list[BlockAttendee]:
        stmt = (
            select(BlockAttendee)
            .where(BlockAttendee.block_id == block_id)
            .order_by(BlockAttendee.id)
        )
        return list(self.session.execute(stmt).scalars())


# =============================================================================
# TURN REPOSITORY
# =============================================================================
class TurnRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, turn_id: str) -> Turn | None:
        return self.session.get(Turn, turn_id)

    def upsert(self, turn: Turn) -> Turn:
        existing = self.get(turn.turn_id) if turn.turn_id else None
        if existing is None:
            self.session.add(turn)
            self.session.flush()
            return turn

        existing.content = turn.content
        existing.source_type = turn.source_type
        existing.meta = dict(turn.meta or {})
        self.session.flush()
        return existing


# =============================================================================
# PLACEMENT REPOSITORY (block_turns)
# =============================================================================
class PlacementRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, block_id: str, turn_id: str) -> BlockTurn | None:
        return self.session.get(BlockTurn, (block_id, turn_id))

    def max_position(self, block_id: str) -> int | None:
        stmt = select(func.max(BlockTurn.sequence_order)).where(BlockTurn.block_id == block_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, placement: BlockTurn) -> BlockTurn:
        """
        Ключ: (block_id, turn_id).
        """
        existing = self.get(placement.block_id, placement.turn_id)
        if existing is None:
            self.session.add(placement)
            self.session.flush()
            return placement

        existing.sequence_order = placement.sequence_order
        self.session.flush()
        return existing

    def count_by_block(self, block_id: str) -> int:
        stmt = select(func.count()).select_from(BlockTurn).where(BlockTurn.block_id == block_id)
        return int(self.session.execute(stmt).scalar_one())

    def list_by_block(self, block_id: str) -> list[BlockTurn]:
        stmt = (
            select(BlockTurn)
            .where(BlockTurn.block_id == block_id)
            .order_by(BlockTurn.sequence_order)
        )
        return list(self.session.execute(stmt).scalars())
