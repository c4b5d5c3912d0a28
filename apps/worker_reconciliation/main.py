"""
Worker Reconciliation.

Назначение:
- периодически запускать transcript_backfill_job
- догружать транскрипты завершённых встреч
"""

from __future__ import annotations

import time

from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.logging import get_project_logger, setup_logging
from meeting_bot_agent.jobs.transcript_backfill_job import run as run_backfill
from meeting_bot_agent.services.provisioning_service import resolve_provisioner
from meeting_bot_agent.storage.db import Database

log = get_project_logger()


def main() -> None:
    setup_logging()
    settings = get_settings()
    interval_sec = max(5, int(settings.backfill_interval_sec))

    log.info(
        "worker_reconciliation_started",
        extra={
            "payload": {
                "enabled": bool(settings.backfill_enabled),
                "interval_sec": interval_sec,
                "limit": int(settings.backfill_limit),
            }
        },
    )

    db = Database()
    _, provisioner = resolve_provisioner()
    try:
        while True:
            try:
                run_backfill(limit=int(settings.backfill_limit), db=db, provisioner=provisioner)
            except Exception as e:
                log.error(
                    "worker_reconciliation_error",
                    extra={"payload": {"err": str(e)[:300]}},
                )
            time.sleep(interval_sec)
    finally:
        db.close()


if __name__ == "__main__":
    main()
