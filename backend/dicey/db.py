from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


WRITE_OPTION = "dicey_write"


def _enable_sqlite_write_locks(engine: Engine) -> None:
    # Writers take the lock at BEGIN so two of them never deadlock upgrading
    # from a shared lock. Readers begin deferred and never block each other.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the engine and session factory for one process."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker[Session]] = None

    def open(self) -> "Database":
        if self.engine is not None:
            return self
        if self.url.startswith("sqlite"):
            # check_same_thread=False is required for SQLite when using threads
            engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
            _enable_sqlite_write_locks(engine)
        else:
            engine = create_engine(self.url, pool_pre_ping=True)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
        return self

    def create_all(self) -> None:
        # import models so their tables are registered on Base.metadata
        from dicey import db_models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._sessions = None

    def session(self) -> Session:
        if self._sessions is None:
            raise RuntimeError("database is not open")
        return self._sessions()


@contextmanager
def transaction(db: Session, write: bool = False) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any failure.

    Nested uses join the outermost unit, which alone commits or rolls back,
    so the outermost unit must say ``write=True`` if anything inside writes.
    """
    if db.info.get("in_transaction"):
        yield db
        return
    db.info["in_transaction"] = True
    try:
        if write and not db.in_transaction():
            db.connection(execution_options={WRITE_OPTION: True})
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.info.pop("in_transaction", None)


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
