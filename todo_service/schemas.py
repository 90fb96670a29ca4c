from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, timezone
from typing import Any, Optional

from todo_service.errors import ValidationError

TITLE_MAX_LENGTH = 200

# Columns a client may change through PUT /tasks/{id}
UPDATABLE_FIELDS = ("title", "completed")


def is_truthy(value: Any) -> bool:
    """Truthiness of a JSON value: any array or object counts as set"""
    if isinstance(value, (list, dict)):
        return True
    return bool(value)


def normalize_title(value: Any) -> str:
    """Trim a title and check it is storable"""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("El título es requerido")
    title = value.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"El título no puede superar {TITLE_MAX_LENGTH} caracteres")
    return title


class TaskCreate(BaseModel):
    """Schema for creating a task"""
    title: str = Field(..., description="Task title")

    @field_validator('title', mode='before')
    @classmethod
    def title_must_not_be_empty(cls, v: Any) -> str:
        """Validate title is not just whitespace"""
        return normalize_title(v)


class TaskPatch(BaseModel):
    """Schema for updating a task - all fields optional, null means unchanged"""
    title: Optional[str] = None
    completed: Optional[bool] = None

    @field_validator('title', mode='before')
    @classmethod
    def title_must_not_be_empty(cls, v: Any) -> Optional[str]:
        """Validate title is not just whitespace"""
        if v is None:
            return v
        return normalize_title(v)

    @field_validator('completed', mode='before')
    @classmethod
    def completed_from_truthiness(cls, v: Any) -> Optional[bool]:
        """Any value a client sends is a flag, stored as its truthiness"""
        if v is None:
            return v
        return is_truthy(v)

    def to_values(self) -> dict:
        """Populated whitelisted fields as column values"""
        values = {}
        for field in UPDATABLE_FIELDS:
            value = getattr(self, field)
            if value is not None:
                values[field] = value
        if "completed" in values:
            values["completed"] = bool(values["completed"])
        return values


class Task(BaseModel):
    """Schema for returning a task"""
    id: int
    title: str
    completed: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Stored timestamps are naive UTC; mark them so they serialize with an offset"""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class TaskDeleted(BaseModel):
    """Confirmation returned by DELETE /tasks/{id}"""
    message: str
    deleted_task: Task = Field(..., alias="deletedTask")

    model_config = ConfigDict(populate_by_name=True)


class HealthStatus(BaseModel):
    status: str
    database: str
    timestamp: Optional[datetime] = None
    error: Optional[str] = None


class ErrorBody(BaseModel):
    error: str
