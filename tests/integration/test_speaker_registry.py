from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select

from meeting_bot_agent.common.errors import SessionNotFoundError
from meeting_bot_agent.domain.enums import BlockType
from meeting_bot_agent.services.speaker_registry import (
    UNKNOWN_SPEAKER,
    SpeakerRegistry,
    normalize_speaker_label,
)
from meeting_bot_agent.storage.models import Block, BlockAttendee
from meeting_bot_agent.storage.repositories import AttendeeRepository, BlockRepository


def _new_block(db, name: str = "Standup") -> str:
    with db.session() as s:
        block = BlockRepository(s).upsert(Block(name=name, block_type=BlockType.meeting, meta={}))
        return block.block_id


def _attendee_count(db, block_id: str) -> int:
    with db.session() as s:
        stmt = select(func.count()).select_from(BlockAttendee).where(
            BlockAttendee.block_id == block_id
        )
        return int(s.execute(stmt).scalar_one())


def test_normalize_speaker_label():
    assert normalize_speaker_label("  Alice   Smith ") == "Alice Smith"
    assert normalize_speaker_label("") == UNKNOWN_SPEAKER
    assert normalize_speaker_label(None) == UNKNOWN_SPEAKER


def test_resolve_creates_once_and_reuses(db):
    block_id = _new_block(db)
    registry = SpeakerRegistry(db)

    first = registry.resolve_attendee(block_id, "Alice")
    second = registry.resolve_attendee(block_id, "Alice")

    assert first.id == second.id
    assert first.user_id is None
    assert first.story == "Alice joined the meeting."
    assert first.speaking_time_seconds == 0
    assert _attendee_count(db, block_id) == 1


def test_same_label_in_different_blocks_is_different_attendee(db):
    a = _new_block(db, "A")
    b = _new_block(db, "B")
    registry = SpeakerRegistry(db)

    assert registry.resolve_attendee(a, "Alice").id != registry.resolve_attendee(b, "Alice").id


def test_missing_label_maps_to_unknown_speaker(db):
    block_id = _new_block(db)
    registry = SpeakerRegistry(db)
    assert registry.resolve_attendee(block_id, None).name == UNKNOWN_SPEAKER
    assert registry.resolve_attendee(block_id, "   ").name == UNKNOWN_SPEAKER
    assert _attendee_count(db, block_id) == 1


def test_resolve_unknown_block_raises(db):
    with pytest.raises(SessionNotFoundError):
        SpeakerRegistry(db).resolve_attendee("no-such-block", "Alice")


def test_concurrent_first_turns_create_single_attendee(db):
    block_id = _new_block(db)
    registry = SpeakerRegistry(db)

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: registry.resolve_attendee(block_id, "Bob").id, range(16)))

    assert len(set(ids)) == 1
    assert _attendee_count(db, block_id) == 1


def test_insert_conflict_falls_back_to_existing_row(db, monkeypatch):
    block_id = _new_block(db)
    registry = SpeakerRegistry(db)
    existing = registry.resolve_attendee(block_id, "Carol")

    # первый lookup "не видит" строку, как будто её вставил параллельный writer
    real_get_by_name = AttendeeRepository.get_by_name
    calls = {"n": 0}

    def _racy_get_by_name(self, block_id: str, name: str):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_get_by_name(self, block_id, name)

    monkeypatch.setattr(AttendeeRepository, "get_by_name", _racy_get_by_name)

    resolved = registry.resolve_attendee(block_id, "Carol")
    assert resolved.id == existing.id
    assert calls["n"] == 2
    assert _attendee_count(db, block_id) == 1
