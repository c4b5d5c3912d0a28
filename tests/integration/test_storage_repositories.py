from __future__ import annotations

import time

from meeting_bot_agent.domain.enums import BlockType, MeetingStatus
from meeting_bot_agent.storage.models import Block, BlockAttendee, BlockMeeting
from meeting_bot_agent.storage.repositories import (
    AttendeeRepository,
    BlockRepository,
    MeetingRepository,
)


def test_missing_keys_return_none(db):
    with db.session() as s:
        assert BlockRepository(s).get("nope") is None
        assert MeetingRepository(s).get_by_bot_id("nope") is None
        assert AttendeeRepository(s).get_by_name("nope", "Alice") is None


def test_block_upsert_updates_existing_and_refreshes_updated_at(db):
    with db.session() as s:
        block = BlockRepository(s).upsert(Block(name="v1", block_type=BlockType.meeting, meta={}))
        block_id = block.block_id
        first_updated_at = block.updated_at

    time.sleep(0.01)
    with db.session() as s:
        updated = BlockRepository(s).upsert(
            Block(block_id=block_id, name="v2", block_type=BlockType.meeting, meta={"k": 1})
        )
        assert updated.block_id == block_id

    with db.session() as s:
        row = BlockRepository(s).get(block_id)
        assert row.name == "v2"
        assert row.meta == {"k": 1}
        assert row.updated_at.replace(tzinfo=None) > first_updated_at.replace(tzinfo=None)


def test_meeting_upsert_keyed_by_block(db):
    with db.session() as s:
        block = BlockRepository(s).upsert(Block(name="m", block_type=BlockType.meeting, meta={}))
        MeetingRepository(s).upsert(
            BlockMeeting(block_id=block.block_id, bot_id="bot-1", meeting_url="https://a")
        )
        block_id = block.block_id

    with db.session() as s:
        MeetingRepository(s).upsert(
            BlockMeeting(
                block_id=block_id,
                bot_id="bot-1",
                meeting_url="https://b",
                status=MeetingStatus.in_progress,
            )
        )

    with db.session() as s:
        m = MeetingRepository(s).get_by_bot_id("bot-1")
        assert m.meeting_url == "https://b"
        assert m.status == MeetingStatus.in_progress
        assert m.full_transcript is None


def test_deleting_block_cascades_to_meeting_and_attendees(db):
    with db.session() as s:
        block = BlockRepository(s).upsert(Block(name="m", block_type=BlockType.meeting, meta={}))
        MeetingRepository(s).upsert(
            BlockMeeting(block_id=block.block_id, bot_id="bot-2", meeting_url="https://a")
        )
        AttendeeRepository(s).upsert(BlockAttendee(block_id=block.block_id, name="Alice"))
        block_id = block.block_id

    with db.session() as s:
        assert BlockRepository(s).delete(block_id) is True
        assert BlockRepository(s).delete(block_id) is False

    with db.session() as s:
        assert MeetingRepository(s).get_by_bot_id("bot-2") is None
        assert AttendeeRepository(s).list_by_block(block_id) == []
