"""
Ingestion Gateway.

Назначение:
- единая точка входа для HTTP/WS/webhook адаптеров
- маршрутизация событий бота по компонентам
- перевод ошибок компонентов в исходы/метрики

Gateway сам не пишет в БД: это делают registry, sequencer и reconciler.
"""

from __future__ import annotations

from dataclasses import dataclass

from meeting_bot_agent.common.errors import (
    InvalidTurnError,
    MeetingNotFoundError,
    SessionNotFoundError,
)
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.common.metrics import record_lifecycle_event, record_turn
from meeting_bot_agent.connectors.base import BotProvisioner
from meeting_bot_agent.contracts.events import LifecycleEvent, TurnEvent
from meeting_bot_agent.contracts.http_api import CreateBotRequest
from meeting_bot_agent.domain.enums import TurnSource
from meeting_bot_agent.domain.records import (
    AttendeeRecord,
    CreatedSession,
    LifecycleOutcome,
    MeetingRecord,
    SessionRecord,
    TurnRecord,
)
from meeting_bot_agent.queue.idempotency import check_and_set, release
from meeting_bot_agent.services.lifecycle_reconciler import SessionLifecycleReconciler
from meeting_bot_agent.services.provisioning_service import resolve_provisioner
from meeting_bot_agent.services.speaker_registry import SpeakerRegistry
from meeting_bot_agent.services.transcript_sequencer import TranscriptSequencer
from meeting_bot_agent.storage.db import Database
from meeting_bot_agent.storage.repositories import AttendeeRepository, BlockRepository

log = get_project_logger()

LIFECYCLE_IDEM_SCOPE = "lifecycle"


@dataclass(frozen=True)
class TurnOutcome:
    """
    result: appended | dropped
    """

    bot_id: str
    result: str
    reason: str | None = None
    turn: TurnRecord | None = None


@dataclass(frozen=True)
class SessionView:
    session: SessionRecord
    meeting: MeetingRecord | None
    attendees: list[AttendeeRecord]


class IngestionGateway:
    def __init__(
        self,
        db: Database,
        *,
        registry: SpeakerRegistry,
        sequencer: TranscriptSequencer,
        reconciler: SessionLifecycleReconciler,
    ) -> None:
        self.db = db
        self.registry = registry
        self.sequencer = sequencer
        self.reconciler = reconciler

    # -------------------------------------------------------------------------
    # Создание сессии (HTTP)
    # -------------------------------------------------------------------------
    def handle_create_request(self, req: CreateBotRequest) -> CreatedSession:
        return self.reconciler.create_session(
            req.meeting_url, req.requested_by, display_name=req.display_name
        )

    # -------------------------------------------------------------------------
    # Реплики (WS)
    # -------------------------------------------------------------------------
    def handle_turn_event(self, ev: TurnEvent) -> TurnOutcome:
        meeting = self.reconciler.find_meeting(ev.bot_id)
        if meeting is None:
            record_turn("dropped")
            log.warning("turn_unknown_bot", extra={"payload": {"bot_id": ev.bot_id}})
            return TurnOutcome(bot_id=ev.bot_id, result="dropped", reason="unknown_bot")

        if not (ev.text or "").strip():
            record_turn("dropped")
            log.warning(
                "turn_empty_content",
                extra={"payload": {"bot_id": ev.bot_id, "block_id": meeting.block_id}},
            )
            return TurnOutcome(bot_id=ev.bot_id, result="dropped", reason="invalid_turn")

        try:
            attendee = self.registry.resolve_attendee(meeting.block_id, ev.speaker)
            turn = self.sequencer.append_turn(
                meeting.block_id,
                attendee.id,
                ev.text,
                source_type=TurnSource.live_capture,
                metadata={
                    "timestamp": ev.timestamp,
                    "bot_id": ev.bot_id,
                    "sequence_hint": ev.sequence,
                },
            )
        except (InvalidTurnError, SessionNotFoundError) as e:
            record_turn("dropped")
            log.warning(
                "turn_dropped",
                extra={"payload": {"bot_id": ev.bot_id, "code": e.code, "error": e.message}},
            )
            return TurnOutcome(bot_id=ev.bot_id, result="dropped", reason=e.code)

        record_turn("appended")
        return TurnOutcome(bot_id=ev.bot_id, result="appended", turn=turn)

    # -------------------------------------------------------------------------
    # Lifecycle (webhook)
    # -------------------------------------------------------------------------
    def handle_lifecycle_event(self, ev: LifecycleEvent) -> LifecycleOutcome:
        if ev.event_id and not check_and_set(LIFECYCLE_IDEM_SCOPE, ev.bot_id, ev.event_id):
            record_lifecycle_event("duplicate")
            log.info(
                "lifecycle_duplicate_event",
                extra={"payload": {"bot_id": ev.bot_id, "event_id": ev.event_id}},
            )
            return LifecycleOutcome(bot_id=ev.bot_id, result="duplicate", reason="duplicate_event")

        try:
            outcome = self.reconciler.apply_lifecycle_event(ev.bot_id, ev.status, ev.timestamp)
        except MeetingNotFoundError:
            self._release_event(ev)
            record_lifecycle_event("not_found")
            return LifecycleOutcome(bot_id=ev.bot_id, result="not_found", reason="unknown_bot")
        except Exception:
            self._release_event(ev)
            record_lifecycle_event("invalid")
            raise

        record_lifecycle_event(outcome.result)
        return outcome

    def _release_event(self, ev: LifecycleEvent) -> None:
        if ev.event_id:
            release(LIFECYCLE_IDEM_SCOPE, ev.bot_id, ev.event_id)

    # -------------------------------------------------------------------------
    # Чтение (GET API)
    # -------------------------------------------------------------------------
    def get_session(self, block_id: str) -> SessionView:
        with self.db.session() as s:
            block = BlockRepository(s).get(block_id)
            if block is None:
                raise SessionNotFoundError(details={"block_id": block_id})
            session = SessionRecord.from_orm(block)
            attendees = [
                AttendeeRecord.from_orm(a) for a in AttendeeRepository(s).list_by_block(block_id)
            ]
        return SessionView(
            session=session,
            meeting=self.reconciler.get_meeting(block_id),
            attendees=attendees,
        )

    def list_turns(self, block_id: str) -> list[TurnRecord]:
        return self.sequencer.list_turns(block_id)


def build_ingestion_gateway(
    db: Database, provisioner: BotProvisioner | None = None
) -> IngestionGateway:
    if provisioner is None:
        provider, provisioner = resolve_provisioner()
        log.info("bot_provider_selected", extra={"payload": {"provider": provider}})
    return IngestionGateway(
        db,
        registry=SpeakerRegistry(db),
        sequencer=TranscriptSequencer(db),
        reconciler=SessionLifecycleReconciler(db, provisioner),
    )
