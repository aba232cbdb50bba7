from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, TypedDict


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A task record as returned by every store backend.

    Fields:
    - id: Unique integer identifier, assigned by the store and never reused
    - title: Non-empty title, stored trimmed
    - description: Optional free text
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp, never changes
    - updated_at: UTC timestamp of the last successful update
    """

    id: int
    title: str
    description: Optional[str]
    completed: bool
    created_at: datetime
    updated_at: datetime


class _Unset:
    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marker for a patch field that was not supplied
UNSET: Any = _Unset()


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TaskPatch:
    """
    Partial update for a task.

    Every field is tri-state: UNSET leaves the stored value alone, anything
    else (None included) replaces it. This keeps "not sent" apart from
    "sent as null/empty".
    """

    title: Any = UNSET
    description: Any = UNSET
    completed: Any = UNSET

    # PUBLIC_INTERFACE
    def changes(self) -> Dict[str, Any]:
        """Return only the fields that were supplied, keyed by field name."""
        return {
            name: value
            for name, value in (
                ("title", self.title),
                ("description", self.description),
                ("completed", self.completed),
            )
            if value is not UNSET
        }

    def is_empty(self) -> bool:
        return not self.changes()


# Largest id a 64-bit signed INTEGER primary key can hold
MAX_TASK_ID = 2**63 - 1
