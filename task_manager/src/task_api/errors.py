from __future__ import annotations

from typing import Optional


class TaskError(Exception):
    """Base class for errors raised by task stores."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# PUBLIC_INTERFACE
class ValidationError(TaskError):
    """A required field is missing or holds an unusable value."""

    status_code = 400


# PUBLIC_INTERFACE
class NotFoundError(TaskError):
    """The operation targets a task id that does not exist."""

    status_code = 404

    def __init__(self, task_id: int) -> None:
        super().__init__("Task not found")
        self.task_id = task_id


# PUBLIC_INTERFACE
class StoreFault(TaskError):
    """
    Unexpected failure of the underlying persistence layer.

    `message` is generic and safe to show to clients; `detail` holds the raw
    fault text for diagnostics only.
    """

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail
