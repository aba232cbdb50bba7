"""
View-state holder for the task board.

`TaskBoard` mirrors server state into local, editable fields the same way the
browser page does: it fetches the full list on load, keeps a draft (title,
description, editing target) for the form, and re-fetches the list after every
successful mutation. A failed request never changes the list or the draft; it
only sets `error`.

It talks to the API through any `httpx.Client`, which includes FastAPI's
`TestClient`.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class ViewState(str, Enum):
    IDLE = "idle"
    LOADED = "loaded"
    LOAD_ERROR = "load_error"
    EDITING = "editing"


class TaskRequestError(Exception):
    """A mutation request failed; the message is what the user gets to see."""


# PUBLIC_INTERFACE
class TaskBoard:
    """
    Client-side state machine for the task board.

    Every mutating action returns True when the server accepted it. While a
    mutation is in flight (`loading`), further mutations are ignored and
    return False.
    """

    def __init__(self, http: httpx.Client, base_path: str = "/tasks") -> None:
        self._http = http
        self._base = base_path.rstrip("/")
        self.tasks: List[Dict[str, Any]] = []
        self.title = ""
        self.description = ""
        self.editing_id: Optional[int] = None
        self.loading = False
        self.error: Optional[str] = None
        self._loaded = False
        self._load_failed = False

    @property
    def state(self) -> ViewState:
        if self.editing_id is not None:
            return ViewState.EDITING
        if self._load_failed:
            return ViewState.LOAD_ERROR
        if self._loaded:
            return ViewState.LOADED
        return ViewState.IDLE

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self.tasks if t.get("completed"))

    # PUBLIC_INTERFACE
    def load(self) -> bool:
        """Fetch the full task list. On failure the list is emptied and an error is shown."""
        try:
            response = self._http.get(self._base)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Error fetching tasks: %s", exc)
            return self._fail_load("Failed to connect to API")

        if response.is_error or not isinstance(data, list):
            logger.warning("API error while fetching tasks: %s", data)
            return self._fail_load("Failed to load tasks")

        self.tasks = data
        self.error = None
        self._loaded = True
        self._load_failed = False
        return True

    def _fail_load(self, message: str) -> bool:
        self.tasks = []
        self.error = message
        self._load_failed = True
        return False

    # PUBLIC_INTERFACE
    def start_edit(self, task: Dict[str, Any]) -> None:
        """Copy a task into the draft and make it the editing target."""
        self.title = task["title"]
        self.description = task.get("description") or ""
        self.editing_id = task["id"]
        self.error = None

    # PUBLIC_INTERFACE
    def cancel_edit(self) -> None:
        self._clear_draft()
        self.error = None

    # PUBLIC_INTERFACE
    def submit(self) -> bool:
        """
        Create a task from the draft, or update the editing target.

        A blank title is ignored. On success the draft is cleared; on failure
        it is kept so the user can retry without retyping.
        """
        if self.loading or not self.title.strip():
            return False
        body = {"title": self.title, "description": self.description or None}
        if self.editing_id is not None:
            ok = self._mutate("PUT", f"{self._base}/{self.editing_id}", body, "Failed to save task")
        else:
            ok = self._mutate("POST", self._base, body, "Failed to save task")
        if ok:
            self._clear_draft()
        return ok

    # PUBLIC_INTERFACE
    def delete(self, task_id: int, confirm: Confirm) -> bool:
        """Delete a task after `confirm` approves. A deleted editing target also drops the draft."""
        if self.loading or not confirm("Delete this task?"):
            return False
        ok = self._mutate("DELETE", f"{self._base}/{task_id}", None, "Failed to delete task")
        if ok and self.editing_id == task_id:
            self._clear_draft()
        return ok

    # PUBLIC_INTERFACE
    def toggle(self, task: Dict[str, Any]) -> bool:
        """Flip a task's completion flag without touching the draft."""
        if self.loading:
            return False
        body = {"completed": not task["completed"]}
        return self._mutate("PUT", f"{self._base}/{task['id']}", body, "Failed to update task")

    def _clear_draft(self) -> None:
        self.title = ""
        self.description = ""
        self.editing_id = None

    def _mutate(self, method: str, path: str, body: Optional[Dict[str, Any]], failure: str) -> bool:
        self.loading = True
        self.error = None
        try:
            self._send(method, path, body)
        except TaskRequestError as exc:
            logger.warning("%s: %s", failure, exc)
            self.error = f"{failure}: {exc}"
            return False
        else:
            self.load()
            return True
        finally:
            self.loading = False

    def _send(self, method: str, path: str, body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            response = self._http.request(method, path, json=body)
        except httpx.HTTPError as exc:
            raise TaskRequestError(str(exc) or "Failed to connect to API") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise TaskRequestError(message or f"HTTP {response.status_code}")
        return data if isinstance(data, dict) else {}
