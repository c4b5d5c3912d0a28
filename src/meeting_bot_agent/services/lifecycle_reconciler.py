"""
Reconciler жизненного цикла встречи.

Назначение:
- создание сессии: бот у провайдера -> блок -> запись встречи
- применение lifecycle-уведомлений (идемпотентно, out-of-order безопасно)
- загрузка финального транскрипта при завершении

Сетевые вызовы провайдера выполняются вне транзакций БД.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from meeting_bot_agent.common.errors import (
    MeetingNotFoundError,
    ProviderError,
    SessionCreateError,
    TranscriptNotFoundError,
    ValidationError,
)
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.common.metrics import record_session_created, record_transcript_fetch
from meeting_bot_agent.common.time import parse_timestamp, utc_now, utc_now_iso
from meeting_bot_agent.connectors.base import BotHandle, BotProvisioner
from meeting_bot_agent.domain.enums import BlockType, MeetingStatus
from meeting_bot_agent.domain.records import (
    CreatedSession,
    LifecycleOutcome,
    MeetingRecord,
    SessionRecord,
)
from meeting_bot_agent.domain.state_machine import parse_status, transition
from meeting_bot_agent.services.provisioning_service import (
    callback_addresses,
    create_bot_with_retries,
    fetch_transcript_with_retries,
)
from meeting_bot_agent.storage.db import Database
from meeting_bot_agent.storage.models import Block, BlockMeeting
from meeting_bot_agent.storage.repositories import BlockRepository, MeetingRepository

log = get_project_logger()

CREATED_BY = "recall_bot"


class SessionLifecycleReconciler:
    def __init__(
        self,
        db: Database,
        provisioner: BotProvisioner,
        *,
        callback_url: str | None = None,
        notify_url: str | None = None,
    ) -> None:
        self.db = db
        self.provisioner = provisioner
        default_callback, default_notify = callback_addresses()
        self.callback_url = callback_url or default_callback
        self.notify_url = notify_url or default_notify

    # -------------------------------------------------------------------------
    # Создание сессии
    # -------------------------------------------------------------------------
    def create_session(
        self,
        meeting_url: str | None,
        requested_by: int | None,
        display_name: str | None = None,
    ) -> CreatedSession:
        url = (meeting_url or "").strip()
        if not url:
            raise ValidationError("meeting_url обязателен", details={"field": "meeting_url"})

        try:
            bot = create_bot_with_retries(
                self.provisioner,
                meeting_url=url,
                callback_url=self.callback_url,
                notify_url=self.notify_url,
            )
        except ProviderError as e:
            record_session_created("provisioning_failed")
            log.error(
                "session_create_provisioning_failed",
                extra={"payload": {"meeting_url": url, "error": e.message}},
            )
            raise SessionCreateError(
                "provisioning", "Не удалось создать бота", details=e.details
            ) from e

        name = (display_name or "").strip() or f"Meeting {utc_now_iso()}"
        try:
            with self.db.session() as s:
                block = BlockRepository(s).upsert(
                    Block(
                        name=name[:255],
                        description=f"Meeting from {url}",
                        block_type=BlockType.meeting,
                        meta={"created_by": CREATED_BY, "bot_id": bot.bot_id},
                    )
                )
                session_record = SessionRecord.from_orm(block)
        except SQLAlchemyError as e:
            self._release_bot(bot)
            record_session_created("persistence_failed")
            log.error(
                "session_create_block_failed",
                extra={"payload": {"bot_id": bot.bot_id, "error": str(e)[:300]}},
            )
            raise SessionCreateError(
                "persistence",
                "Не удалось создать блок встречи",
                details={"bot_id": bot.bot_id},
            ) from e

        try:
            with self.db.session() as s:
                meeting = MeetingRepository(s).upsert(
                    BlockMeeting(
                        block_id=session_record.block_id,
                        bot_id=bot.bot_id,
                        meeting_url=url,
                        status=MeetingStatus.joining,
                        invited_by_user_id=requested_by,
                    )
                )
                meeting_record = MeetingRecord.from_orm(meeting)
        except SQLAlchemyError as e:
            self._compensate_block(session_record.block_id)
            self._release_bot(bot)
            record_session_created("persistence_failed")
            log.error(
                "session_create_meeting_failed",
                extra={
                    "payload": {
                        "bot_id": bot.bot_id,
                        "block_id": session_record.block_id,
                        "error": str(e)[:300],
                    }
                },
            )
            raise SessionCreateError(
                "persistence",
                "Не удалось создать запись встречи",
                details={"bot_id": bot.bot_id},
            ) from e

        record_session_created("ok")
        log.info(
            "session_created",
            extra={
                "payload": {
                    "block_id": session_record.block_id,
                    "bot_id": bot.bot_id,
                    "requested_by": requested_by,
                }
            },
        )
        return CreatedSession(session=session_record, meeting=meeting_record)

    def _compensate_block(self, block_id: str) -> None:
        try:
            with self.db.session() as s:
                BlockRepository(s).delete(block_id)
            log.info("session_create_compensated", extra={"payload": {"block_id": block_id}})
        except SQLAlchemyError as e:
            log.error(
                "session_create_compensation_failed",
                extra={"payload": {"block_id": block_id, "error": str(e)[:300]}},
            )

    def _release_bot(self, bot: BotHandle) -> None:
        try:
            self.provisioner.remove_bot(bot.bot_id)
        except ProviderError as e:
            log.warning(
                "bot_release_failed",
                extra={"payload": {"bot_id": bot.bot_id, "error": e.message}},
            )

    # -------------------------------------------------------------------------
    # Lifecycle-уведомления
    # -------------------------------------------------------------------------
    def apply_lifecycle_event(
        self,
        bot_id: str,
        new_status: str | MeetingStatus,
        event_timestamp: str | float | datetime | None = None,
    ) -> LifecycleOutcome:
        status = parse_status(new_status)

        with self.db.session() as s:
            repo = MeetingRepository(s)
            # Строка встречи блокируется до конца транзакции: параллельные
            # доставки одного события применяются ровно один раз
            meeting = repo.get_by_bot_id(bot_id, for_update=True)
            if meeting is None:
                log.warning("lifecycle_meeting_not_found", extra={"payload": {"bot_id": bot_id}})
                raise MeetingNotFoundError(details={"bot_id": bot_id})

            tr = transition(MeetingStatus(meeting.status), status)
            if not tr.apply:
                log.info(
                    "lifecycle_ignored",
                    extra={
                        "payload": {
                            "bot_id": bot_id,
                            "current": tr.status.value,
                            "requested": status.value,
                            "reason": tr.reason,
                        }
                    },
                )
                result = "noop" if tr.reason == "same_status" else "ignored"
                return LifecycleOutcome(
                    bot_id=bot_id, result=result, status=tr.status, reason=tr.reason
                )

            meeting.status = status
            if status == MeetingStatus.completed:
                meeting.ended_at = parse_timestamp(event_timestamp) or utc_now()
            repo.upsert(meeting)

        log.info(
            "lifecycle_applied",
            extra={"payload": {"bot_id": bot_id, "status": status.value}},
        )

        stored = False
        if status == MeetingStatus.completed:
            stored = self.fetch_final_transcript(bot_id, source="lifecycle") == "stored"
        return LifecycleOutcome(
            bot_id=bot_id, result="applied", status=status, transcript_stored=stored
        )

    def fetch_final_transcript(self, bot_id: str, *, source: str) -> str:
        """
        Загружает полный транскрипт и сохраняет его в запись встречи.
        Ошибка провайдера логируется и не пробрасывается.

        Результат: stored | failed | not_found.
        not_found (404 у провайдера) помечает встречу transcript_unavailable,
        и backfill её больше не выбирает.
        """
        try:
            transcript = fetch_transcript_with_retries(self.provisioner, bot_id=bot_id)
        except TranscriptNotFoundError:
            record_transcript_fetch(source=source, result="not_found")
            log.warning(
                "transcript_not_found",
                extra={"payload": {"bot_id": bot_id, "source": source}},
            )
            self._record_fetch_failure(bot_id, unavailable=True)
            return "not_found"
        except ProviderError as e:
            record_transcript_fetch(source=source, result="failed")
            log.error(
                "transcript_fetch_failed",
                extra={"payload": {"bot_id": bot_id, "source": source, "error": e.message}},
            )
            self._record_fetch_failure(bot_id, unavailable=False)
            return "failed"

        with self.db.session() as s:
            repo = MeetingRepository(s)
            meeting = repo.get_by_bot_id(bot_id)
            if meeting is None:
                log.warning("transcript_meeting_gone", extra={"payload": {"bot_id": bot_id}})
                return "failed"
            meeting.full_transcript = transcript
            repo.upsert(meeting)

        record_transcript_fetch(source=source, result="stored")
        log.info("transcript_stored", extra={"payload": {"bot_id": bot_id, "source": source}})
        return "stored"

    def _record_fetch_failure(self, bot_id: str, *, unavailable: bool) -> None:
        with self.db.session() as s:
            repo = MeetingRepository(s)
            meeting = repo.get_by_bot_id(bot_id, for_update=True)
            if meeting is None:
                return
            meeting.transcript_fetch_attempts = (meeting.transcript_fetch_attempts or 0) + 1
            if unavailable:
                meeting.transcript_unavailable = True
            repo.upsert(meeting)

    # -------------------------------------------------------------------------
    # Чтение
    # -------------------------------------------------------------------------
    def find_meeting(self, bot_id: str) -> MeetingRecord | None:
        with self.db.session() as s:
            meeting = MeetingRepository(s).get_by_bot_id(bot_id)
            return MeetingRecord.from_orm(meeting) if meeting is not None else None

    def get_meeting(self, block_id: str) -> MeetingRecord | None:
        with self.db.session() as s:
            meeting = MeetingRepository(s).get(block_id)
            return MeetingRecord.from_orm(meeting) if meeting is not None else None

    def list_pending_transcripts(self, *, limit: int) -> list[MeetingRecord]:
        with self.db.session() as s:
            rows = MeetingRepository(s).list_completed_without_transcript(limit=limit)
            return [MeetingRecord.from_orm(r) for r in rows]
