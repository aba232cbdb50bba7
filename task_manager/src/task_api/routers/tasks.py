from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Request, status

from ..errors import NotFoundError
from ..repositories import TaskStore
from ..schemas import DeleteResult, ErrorResponse, TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)

_SERVER_ERROR = {500: {"model": ErrorResponse, "description": "Store fault"}}
_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Task not found"}}
_BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Invalid id or body"}}


# PUBLIC_INTERFACE
def get_store(request: Request) -> TaskStore:
    """
    Dependency returning the store owned by the running application.
    """
    return request.app.state.store


# PUBLIC_INTERFACE
def parse_task_id(
    task_id: str = Path(..., pattern=r"^[0-9]+$", max_length=32, description="Task id, plain decimal digits"),
) -> int:
    """
    Dependency parsing the `{task_id}` path segment.

    Only plain digit strings are accepted, so forms such as '1.0', '+1',
    ' 1' or '1_0' are rejected with 400 instead of being coerced.
    """
    return int(task_id)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="Return every task ordered by id.",
    responses={200: {"description": "List retrieved successfully"}, **_SERVER_ERROR},
)
def list_tasks(store: TaskStore = Depends(get_store)) -> List[TaskOut]:
    """
    List all tasks.
    """
    return [TaskOut(**t) for t in store.list()]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task and return the created resource.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"model": ErrorResponse, "description": "Title missing or blank"},
        **_SERVER_ERROR,
    },
)
def create_task(payload: TaskCreate, store: TaskStore = Depends(get_store)) -> TaskOut:
    """
    Create a new task. New tasks always start out not completed.
    """
    created = store.create(payload.title, payload.description)
    logger.info("Created task %s", created["id"])
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={200: {"description": "Task found"}, **_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
)
def get_task(task_id: int = Depends(parse_task_id), store: TaskStore = Depends(get_store)) -> TaskOut:
    item = store.get(task_id)
    if item is None:
        raise NotFoundError(task_id)
    return TaskOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Merge the supplied fields into an existing task. Fields left out of the body are not "
        "touched; an explicit null description clears it."
    ),
    responses={200: {"description": "Task updated"}, **_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
)
def update_task(
    payload: TaskUpdate,
    task_id: int = Depends(parse_task_id),
    store: TaskStore = Depends(get_store),
) -> TaskOut:
    """
    Partial update of a task.
    """
    updated = store.update(task_id, payload.to_patch())
    logger.info("Updated task %s (%s)", task_id, ", ".join(sorted(payload.model_fields_set)) or "no fields")
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=DeleteResult,
    summary="Delete Task",
    description="Delete a task permanently.",
    responses={200: {"description": "Task deleted"}, **_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
)
def delete_task(task_id: int = Depends(parse_task_id), store: TaskStore = Depends(get_store)) -> DeleteResult:
    """
    Delete a task. Deleting the same id twice reports 404 the second time.
    """
    store.delete(task_id)
    logger.info("Deleted task %s", task_id)
    return DeleteResult()
