"""
Transcript backfill job.

Назначение:
- догрузка финального транскрипта для завершённых встреч,
  у которых он не сохранился (провайдер не ответил при завершении)
- встречи с 404 от провайдера помечаются и выпадают из выборки
"""

from __future__ import annotations

from dataclasses import dataclass

from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.logging import get_project_logger
from meeting_bot_agent.common.metrics import record_backfill_result
from meeting_bot_agent.connectors.base import BotProvisioner
from meeting_bot_agent.services.lifecycle_reconciler import SessionLifecycleReconciler
from meeting_bot_agent.services.provisioning_service import resolve_provisioner
from meeting_bot_agent.storage.db import Database

log = get_project_logger()


@dataclass
class BackfillResult:
    scanned: int = 0
    filled: int = 0
    failed: int = 0
    unavailable: int = 0


def run(
    *,
    limit: int | None = None,
    db: Database | None = None,
    provisioner: BotProvisioner | None = None,
) -> BackfillResult | None:
    settings = get_settings()
    if not settings.backfill_enabled:
        log.info("backfill_job_skipped", extra={"payload": {"reason": "disabled"}})
        return None

    batch = max(1, int(limit if limit is not None else settings.backfill_limit))
    owns_db = db is None
    database = db or Database()
    if provisioner is None:
        _, provisioner = resolve_provisioner()

    log.info("backfill_job_started", extra={"payload": {"limit": batch}})
    try:
        reconciler = SessionLifecycleReconciler(database, provisioner)
        pending = reconciler.list_pending_transcripts(limit=batch)
        result = BackfillResult(scanned=len(pending))
        for meeting in pending:
            outcome = reconciler.fetch_final_transcript(meeting.bot_id, source="backfill")
            if outcome == "stored":
                result.filled += 1
            elif outcome == "not_found":
                result.unavailable += 1
            else:
                result.failed += 1
    finally:
        if owns_db:
            database.close()

    record_backfill_result(scanned=result.scanned, filled=result.filled)
    log.info(
        "backfill_job_finished",
        extra={
            "payload": {
                "scanned": result.scanned,
                "filled": result.filled,
                "failed": result.failed,
                "unavailable": result.unavailable,
            }
        },
    )
    return result
