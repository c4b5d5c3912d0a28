"""
ORM-модели базы данных.

Назначение:
- блоки (сессии) и данные встречи, привязанные к боту
- участники, реплики и их порядок внутри блока

Инварианты на уровне схемы:
- одна запись встречи на блок, bot_id уникален
- (block_id, name) участника уникален
- (block_id, sequence_order) размещения уникален
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from meeting_bot_agent.common.ids import new_uuid
from meeting_bot_agent.common.time import utc_now
from meeting_bot_agent.domain.enums import BlockType, MeetingStatus, TurnSource


# =============================================================================
# BASE
# =============================================================================
class Base(DeclarativeBase):
    pass


# =============================================================================
# BLOCK (сессия)
# =============================================================================
class Block(Base):
    """
    Контейнер одного разговора/встречи.
    """

    __tablename__ = "blocks"

    block_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    block_type: Mapped[BlockType] = mapped_column(
        Enum(BlockType), default=BlockType.meeting, nullable=False
    )
    # "metadata" зарезервировано в Declarative API, поэтому атрибут называется meta
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    meeting: Mapped[BlockMeeting | None] = relationship(
        back_populates="block",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    attendees: Mapped[list[BlockAttendee]] = relationship(
        back_populates="block",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    placements: Mapped[list[BlockTurn]] = relationship(
        back_populates="block",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BlockTurn.sequence_order",
    )


# =============================================================================
# BLOCK MEETING (данные встречи)
# =============================================================================
class BlockMeeting(Base):
    """
    Привязка блока к внешнему боту и его жизненному циклу.
    """

    __tablename__ = "block_meetings"

    block_id: Mapped[str] = mapped_column(
        ForeignKey("blocks.block_id", ondelete="CASCADE"), primary_key=True
    )
    bot_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    meeting_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[MeetingStatus] = mapped_column(
        Enum(MeetingStatus), default=MeetingStatus.joining, nullable=False, index=True
    )
    invited_by_user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    full_transcript: Mapped[Any | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    # Неудачные загрузки транскрипта; 404 от провайдера выключает backfill для встречи
    transcript_fetch_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transcript_unavailable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    block: Mapped[Block] = relationship(back_populates="meeting")


# =============================================================================
# BLOCK ATTENDEE (участник)
# =============================================================================
class BlockAttendee(Base):
    """
    Спикер в рамках одного блока.
    user_id пуст, пока участник не привязал аккаунт.
    """

    __tablename__ = "block_attendees"
    __table_args__ = (UniqueConstraint("block_id", "name", name="uq_block_attendees_block_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    block_id: Mapped[str] = mapped_column(
        ForeignKey("blocks.block_id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    story: Mapped[str | None] = mapped_column(Text, nullable=True)
    speaking_time_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    block: Mapped[Block] = relationship(back_populates="attendees")


# =============================================================================
# TURN (реплика)
# =============================================================================
class Turn(Base):
    """
    Одна реплика. Порядок внутри блока задаёт BlockTurn.
    """

    __tablename__ = "turns"

    turn_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    attendee_id: Mapped[int | None] = mapped_column(
        ForeignKey("block_attendees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source_type: Mapped[str] = mapped_column(
        String(50), default=TurnSource.live_capture.value, nullable=False, index=True
    )
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    attendee: Mapped[BlockAttendee | None] = relationship()


# =============================================================================
# BLOCK TURN (размещение реплики в блоке)
# =============================================================================
class BlockTurn(Base):
    """
    Членство реплики в транскрипте блока с порядковым номером.
    """

    __tablename__ = "block_turns"
    __table_args__ = (
        UniqueConstraint("block_id", "sequence_order", name="uq_block_turns_block_sequence"),
        Index("ix_block_turns_block_id", "block_id"),
    )

    block_id: Mapped[str] = mapped_column(
        ForeignKey("blocks.block_id", ondelete="CASCADE"), primary_key=True
    )
    turn_id: Mapped[str] = mapped_column(
        ForeignKey("turns.turn_id", ondelete="CASCADE"), primary_key=True
    )
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    block: Mapped[Block] = relationship(back_populates="placements")
    turn: Mapped[Turn] = relationship()
