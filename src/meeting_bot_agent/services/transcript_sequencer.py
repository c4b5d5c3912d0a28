"""
Секвенсор транскрипта.

Назначение:
- запись реплики (turns) и её размещения в блоке (block_turns)
- позиция = MAX(sequence_order) + 1, начиная с 1

Инвариант: для любого блока позиции уникальны и строго возрастают в порядке
вставки, наблюдаемом этим компонентом. Чтение MAX и вставка размещения идут
под границей сериализации блока:
- in-process lock по block_id (несколько соединений в одном процессе)
- SELECT ... FOR NO KEY UPDATE строки блока в той же транзакции (несколько процессов)
- уникальный индекс (block_id, sequence_order) как последний рубеж
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from meeting_bot_agent.common.errors import InvalidTurnError, SessionNotFoundError
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.domain.enums import TurnSource
from meeting_bot_agent.domain.records import TurnRecord
from meeting_bot_agent.storage.db import Database
from meeting_bot_agent.storage.models import BlockTurn, Turn
from meeting_bot_agent.storage.repositories import (
    AttendeeRepository,
    BlockRepository,
    PlacementRepository,
    TurnRepository,
)

log = get_project_logger()

FIRST_POSITION = 1


class _BlockLock:
    __slots__ = ("mutex", "__weakref__")

    def __init__(self) -> None:
        self.mutex = threading.Lock()


class _BlockLocks:
    """
    Lock на каждый block_id. Неиспользуемые lock'и собирает GC.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, _BlockLock] = weakref.WeakValueDictionary()

    def get(self, block_id: str) -> _BlockLock:
        with self._guard:
            lock = self._locks.get(block_id)
            if lock is None:
                lock = _BlockLock()
                self._locks[block_id] = lock
            return lock


class TranscriptSequencer:
    def __init__(self, db: Database) -> None:
        self.db = db
        self._locks = _BlockLocks()

    @contextmanager
    def _block_boundary(self, block_id: str) -> Iterator[None]:
        lock = self._locks.get(block_id)
        with lock.mutex:
            yield

    def append_turn(
        self,
        block_id: str,
        attendee_id: int | None,
        content: str | None,
        source_type: str | TurnSource | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TurnRecord:
        text = (content or "").strip()
        if not text:
            raise InvalidTurnError(details={"block_id": block_id})

        source = source_type or TurnSource.live_capture
        source_value = str(getattr(source, "value", source))

        with self._block_boundary(block_id), self.db.session() as s:
            block = BlockRepository(s).get_for_update(block_id)
            if block is None:
                raise SessionNotFoundError(details={"block_id": block_id})

            speaker: str | None = None
            if attendee_id is not None:
                attendee = AttendeeRepository(s).get(attendee_id)
                speaker = attendee.name if attendee is not None else None

            turn = TurnRepository(s).upsert(
                Turn(
                    attendee_id=attendee_id,
                    content=text,
                    source_type=source_value,
                    meta=dict(metadata or {}),
                )
            )

            placements = PlacementRepository(s)
            current_max = placements.max_position(block_id)
            position = FIRST_POSITION if current_max is None else int(current_max) + 1
            placements.upsert(
                BlockTurn(block_id=block_id, turn_id=turn.turn_id, sequence_order=position)
            )

            record = TurnRecord.from_orm(turn, block_id=block_id, position=position, speaker=speaker)

        log.info(
            "turn_appended",
            extra={
                "payload": {
                    "block_id": block_id,
                    "turn_id": record.turn_id,
                    "position": position,
                    "attendee_id": attendee_id,
                }
            },
        )
        return record

    def list_turns(self, block_id: str) -> list[TurnRecord]:
        with self.db.session() as s:
            if BlockRepository(s).get(block_id) is None:
                raise SessionNotFoundError(details={"block_id": block_id})
            out: list[TurnRecord] = []
            for p in PlacementRepository(s).list_by_block(block_id):
                turn = p.turn
                speaker = turn.attendee.name if turn.attendee is not None else None
                out.append(
                    TurnRecord.from_orm(
                        turn, block_id=block_id, position=p.sequence_order, speaker=speaker
                    )
                )
            return out
