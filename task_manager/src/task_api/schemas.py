from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from .models import TaskPatch


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task.

    `title` is declared optional here so that a missing title reaches the
    store and is rejected with the same message as a blank one.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "description": "Two litres, semi-skimmed",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task (required, non-blank)")
    description: Optional[str] = Field(default=None, description="Optional detailed description")


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only fields present in the body are applied.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="New title; must not be blank when sent")
    description: Optional[str] = Field(default=None, description="New description; null clears it")
    completed: Optional[StrictBool] = Field(default=None, description="Completion status flag")

    # PUBLIC_INTERFACE
    def to_patch(self) -> TaskPatch:
        """Translate the fields actually present in the request body into a TaskPatch."""
        supplied = {name: getattr(self, name) for name in self.model_fields_set}
        return TaskPatch(**supplied)


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task. Serialized with camelCase keys.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Buy milk",
                "description": None,
                "completed": False,
                "createdAt": "2025-01-25T10:15:30.123456Z",
                "updatedAt": "2025-01-25T10:15:30.123456Z",
            }
        },
    )

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., alias="createdAt", description="Creation timestamp")
    updated_at: datetime = Field(..., alias="updatedAt", description="Last update timestamp")


class DeleteResult(BaseModel):
    success: bool = Field(default=True, description="Always true on a successful delete")
    message: str = Field(default="Task deleted successfully", description="Human readable outcome")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str = Field(..., description="Short message suitable for showing to a user")
    details: Optional[Any] = Field(default=None, description="Optional diagnostic information")
