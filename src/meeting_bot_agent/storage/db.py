"""
Инициализация базы данных и сессий SQLAlchemy.

Назначение:
- Database: явный хэндл хранилища (engine + фабрика сессий)
- контекстный менеджер для транзакций
- жизненный цикл (open/close) принадлежит точке входа процесса,
  компоненты получают хэндл в конструкторе

SQLite (dev/тесты):
- включаем foreign_keys (иначе не работает ON DELETE CASCADE)
- транзакции открываются как BEGIN IMMEDIATE: записи сериализуются на уровне БД,
  SAVEPOINT работает корректно
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from meeting_bot_agent.common.config import get_settings
from meeting_bot_agent.common.logging import get_project_logger

from .models import Base

log = get_project_logger()


def _is_sqlite(dsn: str) -> bool:
    return dsn.strip().lower().startswith("sqlite")


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        # pysqlite сам управляет BEGIN, отключаем, чтобы работали SAVEPOINT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(dsn: str, *, pool_size: int | None = None) -> Engine:
    if _is_sqlite(dsn):
        engine = create_engine(
            dsn,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _configure_sqlite(engine)
        return engine

    return create_engine(
        dsn,
        pool_pre_ping=True,
        pool_size=max(1, int(pool_size or get_settings().db_pool_size)),
    )


# =============================================================================
# DATABASE HANDLE
# =============================================================================
class Database:
    def __init__(self, dsn: str | None = None, *, engine: Engine | None = None) -> None:
        self.dsn = dsn or get_settings().database_dsn
        self.engine = engine or build_engine(self.dsn)
        self.is_sqlite = self.engine.dialect.name == "sqlite"
        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_all(self) -> None:
        """
        Создание таблиц без миграций (dev/тесты).
        """
        Base.metadata.create_all(self.engine)
        log.info("db_schema_ready", extra={"payload": {"dialect": self.engine.dialect.name}})

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Контекстный менеджер для работы с БД.

        Использование:
            with db.session() as s:
                s.add(...)
        """
        s: Session = self._session_factory()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def close(self) -> None:
        self.engine.dispose()
