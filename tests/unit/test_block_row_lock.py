from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql

from meeting_bot_agent.storage.repositories import BlockRepository


class _CapturingSession:
    def __init__(self) -> None:
        self.statements: list[Any] = []

    def execute(self, stmt):
        self.statements.append(stmt)
        return self

    def scalar_one_or_none(self):
        return None


def test_block_lock_does_not_conflict_with_fk_key_share() -> None:
    s = _CapturingSession()
    assert BlockRepository(s).get_for_update("b-1") is None

    sql = str(s.statements[0].compile(dialect=postgresql.dialect()))
    assert "FOR NO KEY UPDATE" in sql
    assert "FROM blocks" in sql
