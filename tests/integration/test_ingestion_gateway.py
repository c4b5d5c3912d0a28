from __future__ import annotations

import pytest

from meeting_bot_agent.common.errors import ValidationError
from meeting_bot_agent.common.ids import new_uuid
from meeting_bot_agent.contracts.events import LifecycleEvent, TurnEvent
from meeting_bot_agent.contracts.http_api import CreateBotRequest
from meeting_bot_agent.domain.enums import MeetingStatus
from meeting_bot_agent.services.ingestion_gateway import build_ingestion_gateway


@pytest.fixture()
def gateway(db, provisioner):
    return build_ingestion_gateway(db, provisioner)


def _start(gateway) -> tuple[str, str]:
    created = gateway.handle_create_request(
        CreateBotRequest(meeting_url="https://meet.example/abc", requested_by=7)
    )
    return created.session.block_id, created.meeting.bot_id


def test_turns_from_two_speakers_are_sequenced(gateway):
    block_id, bot_id = _start(gateway)

    for speaker, text in [("Alice", "hi"), ("Bob", "hello"), ("Alice", "let's start")]:
        outcome = gateway.handle_turn_event(
            TurnEvent(bot_id=bot_id, speaker=speaker, text=text, timestamp=1.0, sequence=3)
        )
        assert outcome.result == "appended"

    turns = gateway.list_turns(block_id)
    assert [(t.position, t.speaker, t.content) for t in turns] == [
        (1, "Alice", "hi"),
        (2, "Bob", "hello"),
        (3, "Alice", "let's start"),
    ]
    assert turns[0].metadata == {"timestamp": 1.0, "bot_id": bot_id, "sequence_hint": 3}

    view = gateway.get_session(block_id)
    assert sorted(a.name for a in view.attendees) == ["Alice", "Bob"]
    assert view.meeting.bot_id == bot_id


def test_turn_for_unknown_bot_is_dropped(gateway):
    outcome = gateway.handle_turn_event(TurnEvent(bot_id="ghost", speaker="A", text="hi"))
    assert outcome.result == "dropped"
    assert outcome.reason == "unknown_bot"


def test_empty_turn_is_dropped_without_attendee(gateway):
    block_id, bot_id = _start(gateway)
    outcome = gateway.handle_turn_event(TurnEvent(bot_id=bot_id, speaker="Zed", text="   "))
    assert outcome.result == "dropped"
    assert gateway.get_session(block_id).attendees == []
    assert gateway.list_turns(block_id) == []


def test_lifecycle_duplicate_event_id_is_deduplicated(gateway, provisioner):
    _, bot_id = _start(gateway)
    event_id = new_uuid()

    first = gateway.handle_lifecycle_event(
        LifecycleEvent(bot_id=bot_id, status="completed", event_id=event_id)
    )
    second = gateway.handle_lifecycle_event(
        LifecycleEvent(bot_id=bot_id, status="completed", event_id=event_id)
    )

    assert first.result == "applied"
    assert second.result == "duplicate"
    assert provisioner.fetched == [bot_id]


def test_lifecycle_unknown_bot_releases_event_id(gateway):
    event_id = new_uuid()
    ev = LifecycleEvent(bot_id="ghost", status="completed", event_id=event_id)
    assert gateway.handle_lifecycle_event(ev).result == "not_found"
    assert gateway.handle_lifecycle_event(ev).result == "not_found"


def test_lifecycle_invalid_status_propagates(gateway):
    _, bot_id = _start(gateway)
    with pytest.raises(ValidationError):
        gateway.handle_lifecycle_event(LifecycleEvent(bot_id=bot_id, status="teleported"))
    assert gateway.reconciler.find_meeting(bot_id).status == MeetingStatus.joining


def test_standup_scenario(gateway, provisioner):
    created = gateway.handle_create_request(
        CreateBotRequest(meeting_url="https://call/abc", requested_by=7, display_name="Standup")
    )
    assert created.session.name == "Standup"
    assert created.meeting.status == MeetingStatus.joining
    bot_id = created.meeting.bot_id

    t1 = gateway.handle_turn_event(
        TurnEvent(bot_id=bot_id, speaker="Dana", text="Let's start", timestamp="t1")
    )
    t2 = gateway.handle_turn_event(TurnEvent(bot_id=bot_id, speaker="Dana", text="Agenda first"))
    assert (t1.turn.position, t2.turn.position) == (1, 2)
    assert t1.turn.attendee_id == t2.turn.attendee_id
    assert t1.turn.metadata["bot_id"] == bot_id
    assert t1.turn.metadata["timestamp"] == "t1"

    done = gateway.handle_lifecycle_event(LifecycleEvent(bot_id=bot_id, status="completed"))
    assert done.result == "applied"
    meeting = gateway.reconciler.find_meeting(bot_id)
    assert meeting.status == MeetingStatus.completed
    assert meeting.ended_at is not None
    assert meeting.full_transcript == provisioner.transcript

    again = gateway.handle_lifecycle_event(LifecycleEvent(bot_id=bot_id, status="completed"))
    assert again.result == "noop"
    assert gateway.reconciler.find_meeting(bot_id) == meeting
    assert provisioner.fetched == [bot_id]
