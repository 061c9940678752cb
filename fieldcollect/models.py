"""
Pydantic models for fieldcollect.

Defines the survey task entities stored locally, plus the read-only
TaskAggregate composed by the loader.
"""

from enum import Enum
from typing import List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator


def _new_id() -> str:
    return str(uuid4())


class TaskType(str, Enum):
    """Kind of data a task collects."""

    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    TIME = "TIME"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    PHOTO = "PHOTO"
    DROP_PIN = "DROP_PIN"
    DRAW_AREA = "DRAW_AREA"
    CAPTURE_LOCATION = "CAPTURE_LOCATION"
    UNKNOWN = "UNKNOWN"


class MultipleChoiceType(str, Enum):
    """Cardinality of a multiple choice question."""

    SELECT_ONE = "SELECT_ONE"
    SELECT_MULTIPLE = "SELECT_MULTIPLE"


class Task(BaseModel):
    """
    Represents a single survey task (one question shown to a data collector).

    Tasks belong to a job and are displayed in ``index`` order.
    """

    id: str = Field(default_factory=_new_id, min_length=1, description="Unique identifier for the task")
    job_id: Optional[str] = Field(default=None, description="Job (form) this task belongs to")
    index: int = Field(default=0, ge=0, description="Display order within the job")
    task_type: TaskType = Field(default=TaskType.TEXT, description="Kind of data collected")
    label: str = Field(..., min_length=1, max_length=500, description="Question text")
    is_required: bool = Field(default=False, description="Whether an answer is mandatory")

    class Config:
        """Pydantic configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "t1",
                "job_id": "job-1",
                "index": 0,
                "task_type": "MULTIPLE_CHOICE",
                "label": "Tree species",
                "is_required": True,
            }
        }

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        """
        Reject labels made only of whitespace.

        Raises:
            ValueError: If the label is blank
        """
        if not v.strip():
            raise ValueError("Task label cannot be blank")
        return v


class MultipleChoice(BaseModel):
    """Multiple choice definition attached to a task."""

    id: str = Field(default_factory=_new_id, min_length=1)
    task_id: Optional[str] = Field(default=None, description="Owning task")
    type: MultipleChoiceType = Field(default=MultipleChoiceType.SELECT_ONE)
    has_other_option: bool = Field(default=False, description="Whether free-text 'other' is offered")

    class Config:
        """Pydantic configuration."""
        frozen = True


class Option(BaseModel):
    """
    A selectable option.

    Options reference their task directly rather than their multiple choice
    definition, matching the stored relation.
    """

    id: str = Field(default_factory=_new_id, min_length=1)
    task_id: Optional[str] = Field(default=None, description="Owning task")
    index: int = Field(default=0, ge=0, description="Display order among the task's options")
    code: str = Field(default="", max_length=100, description="Machine-readable value")
    label: str = Field(..., min_length=1, max_length=500, description="Text shown to the collector")

    class Config:
        """Pydantic configuration."""
        frozen = True


class TaskAggregate(BaseModel):
    """
    Read-only view combining one task with its related child rows.

    Built on every load and never persisted.
    """

    task: Task
    multiple_choices: Tuple[MultipleChoice, ...] = Field(default_factory=tuple)
    options: Tuple[Option, ...] = Field(default_factory=tuple)

    class Config:
        """Pydantic configuration."""
        frozen = True

    @computed_field
    @property
    def is_multiple_choice(self) -> bool:
        """True when the task collects a multiple choice answer."""
        return self.task.task_type == TaskType.MULTIPLE_CHOICE

    @computed_field
    @property
    def option_labels(self) -> List[str]:
        """Option labels in display order."""
        return [option.label for option in self.options]
