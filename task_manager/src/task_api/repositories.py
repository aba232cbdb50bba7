from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import TaskEntity, TaskPatch
from .settings import Settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def clean_title(value: Any) -> str:
    """
    Return the trimmed title, or raise ValidationError when it is missing,
    not a string, or blank.
    """
    if value is None:
        raise ValidationError("Title is required")
    if not isinstance(value, str):
        raise ValidationError("Title must be a string")
    title = value.strip()
    if not title:
        raise ValidationError("Title is required")
    return title


def clean_description(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError("Description must be a string or null")
    return value


# PUBLIC_INTERFACE
def clean_patch(patch: TaskPatch) -> Dict[str, Any]:
    """
    Validate the supplied fields of a patch and return them as a dict.

    Title follows the same rule as on create. Description accepts text or
    None (None clears it). Completed must be a real boolean.
    """
    changes = patch.changes()
    if "title" in changes:
        changes["title"] = clean_title(changes["title"])
    if "description" in changes:
        clean_description(changes["description"])
    if "completed" in changes and not isinstance(changes["completed"], bool):
        raise ValidationError("Completed must be a boolean")
    return changes


# PUBLIC_INTERFACE
class TaskStore(ABC):
    """
    Persistence contract for tasks.

    Stores are constructed explicitly, opened once before use and closed on
    shutdown. Every operation touches at most one row.
    """

    backend: str = "abstract"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or utcnow

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc)

    def open(self) -> None:
        """Acquire backing resources. Safe to call more than once."""

    def close(self) -> None:
        """Release backing resources."""

    def __enter__(self) -> "TaskStore":
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def list(self) -> List[TaskEntity]:
        """Return every task ordered by id."""

    @abstractmethod
    def create(self, title: Any, description: Optional[str] = None) -> TaskEntity:
        """Persist and return a new task. Raises ValidationError on a blank title."""

    @abstractmethod
    def get(self, task_id: int) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: int, patch: TaskPatch) -> TaskEntity:
        """Apply the supplied patch fields. Raises NotFoundError for unknown ids."""

    @abstractmethod
    def delete(self, task_id: int) -> None:
        """Remove a task permanently. Raises NotFoundError for unknown ids."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored tasks."""


class InMemoryTaskStore(TaskStore):
    """
    Thread-safe in-memory store suitable for testing and throwaway runs.
    """

    backend = "memory"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._lock = RLock()
        self._items: Dict[int, TaskEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def close(self) -> None:
        with self._lock:
            self._items.clear()

    def list(self) -> List[TaskEntity]:
        with self._lock:
            return [self._items[k].copy() for k in sorted(self._items)]

    def create(self, title: Any, description: Optional[str] = None) -> TaskEntity:
        cleaned = clean_title(title)
        description = clean_description(description)
        now = self._now()
        with self._lock:
            entity: TaskEntity = {
                "id": self._allocate_id(),
                "title": cleaned,
                "description": description,
                "completed": False,
                "created_at": now,
                "updated_at": now,
            }
            self._items[entity["id"]] = entity
            return entity.copy()

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def update(self, task_id: int, patch: TaskPatch) -> TaskEntity:
        changes = clean_patch(patch)
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                raise NotFoundError(task_id)

            updated = existing.copy()
            updated.update(changes)  # type: ignore[typeddict-item]
            updated["updated_at"] = self._now()

            self._items[task_id] = updated
            return updated.copy()

    def delete(self, task_id: int) -> None:
        with self._lock:
            if self._items.pop(task_id, None) is None:
                raise NotFoundError(task_id)

    def count(self) -> int:
        with self._lock:
            return len(self._items)


# PUBLIC_INTERFACE
def create_store(settings: Settings, clock: Optional[Clock] = None) -> TaskStore:
    """
    Build the configured store. The caller owns its lifecycle.
    - memory: InMemoryTaskStore
    - sql: SqlTaskStore bound to settings.database_url
    """
    if settings.persistence_backend == "memory":
        logger.info("Using in-memory task store")
        return InMemoryTaskStore(clock=clock)

    from .db import SqlTaskStore

    return SqlTaskStore(settings.database_url, echo=settings.sql_echo, clock=clock)
