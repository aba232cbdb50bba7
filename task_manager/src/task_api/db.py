from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, Text, create_engine, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import NotFoundError, StoreFault
from .models import MAX_TASK_ID, TaskEntity, TaskPatch
from .repositories import Clock, TaskStore, clean_description, clean_patch, clean_title

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class TaskRow(Base):
    """ORM mapping of the `tasks` table."""

    __tablename__ = "tasks"
    # AUTOINCREMENT keeps SQLite from handing out the id of a deleted row
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<TaskRow(id={self.id}, title={self.title!r}, completed={self.completed})>"


def _aware(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_entity(row: TaskRow) -> TaskEntity:
    return {
        "id": int(row.id),
        "title": str(row.title),
        "description": row.description,
        "completed": bool(row.completed),
        "created_at": _aware(row.created_at),
        "updated_at": _aware(row.updated_at),
    }


def _find(session: Session, task_id: int) -> Optional[TaskRow]:
    # The driver overflows on ids outside the INTEGER range; no row can have one
    if not 0 < task_id <= MAX_TASK_ID:
        return None
    return session.get(TaskRow, task_id)


def _engine_options(url: str) -> Dict[str, Any]:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}

    options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        options["poolclass"] = StaticPool
    else:
        os.makedirs(os.path.dirname(parsed.database) or ".", exist_ok=True)
    return options


class SqlTaskStore(TaskStore):
    """
    Task store backed by a relational table through the SQLAlchemy ORM.

    Each operation runs in its own session and transaction. Driver and
    database errors surface as StoreFault with a generic message.
    """

    backend = "sql"

    def __init__(self, url: str, echo: bool = False, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._url = url
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker[Session]] = None

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    def open(self) -> None:
        if self._engine is not None:
            return
        try:
            engine = create_engine(self._url, echo=self._echo, **_engine_options(self._url))
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise StoreFault("Failed to open task store", str(exc)) from exc
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        logger.info("Opened task store at %s", make_url(self._url).render_as_string(hide_password=True))

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.info("Closed task store")

    @contextmanager
    def _session(self, failure: str) -> Iterator[Session]:
        if self._sessions is None:
            raise StoreFault(failure, "task store is not open")
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreFault(failure, str(exc)) from exc
        finally:
            session.close()

    def list(self) -> List[TaskEntity]:
        with self._session("Failed to fetch tasks") as session:
            rows = session.scalars(select(TaskRow).order_by(TaskRow.id)).all()
            return [_row_to_entity(r) for r in rows]

    def create(self, title: Any, description: Optional[str] = None) -> TaskEntity:
        cleaned = clean_title(title)
        description = clean_description(description)
        now = self._now()
        with self._session("Failed to create task") as session:
            row = TaskRow(
                title=cleaned,
                description=description,
                completed=False,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            return _row_to_entity(row)

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._session("Failed to fetch task") as session:
            row = _find(session, task_id)
            return _row_to_entity(row) if row else None

    def update(self, task_id: int, patch: TaskPatch) -> TaskEntity:
        changes = clean_patch(patch)
        with self._session("Failed to update task") as session:
            row = _find(session, task_id)
            if row is None:
                raise NotFoundError(task_id)
            for name, value in changes.items():
                setattr(row, name, value)
            row.updated_at = self._now()
            session.flush()
            return _row_to_entity(row)

    def delete(self, task_id: int) -> None:
        with self._session("Failed to delete task") as session:
            row = _find(session, task_id)
            if row is None:
                raise NotFoundError(task_id)
            session.delete(row)

    def count(self) -> int:
        with self._session("Failed to count tasks") as session:
            return int(session.scalar(select(func.count()).select_from(TaskRow)) or 0)
