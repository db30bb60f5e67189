from datetime import date, datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional

TaskStatus = Literal["pending", "completed"]
TaskEffort = Literal["low", "medium", "high"]


class Task(BaseModel):
    id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = "pending"
    due_date: Optional[date] = None
    estimated_effort: Optional[TaskEffort] = None
    prioritization_reason: Optional[str] = None  # Set from the latest AI suggestion

    def to_summary(self) -> "TaskSummary":
        return TaskSummary(
            title=self.title,
            description=self.description,
            due_date=self.due_date.isoformat() if self.due_date else None,
            estimated_effort=self.estimated_effort,
        )

class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = "pending"
    due_date: Optional[date] = None
    estimated_effort: Optional[TaskEffort] = None

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None
    estimated_effort: Optional[TaskEffort] = None


# Prioritization exchange. Wire names are camelCase.

class TaskSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, description="The title of the task.")
    description: Optional[str] = Field(default=None, description="A description of the task.")
    due_date: Optional[str] = Field(
        default=None,
        alias="dueDate",
        description="The due date of the task in ISO format.",
    )
    estimated_effort: Optional[TaskEffort] = Field(
        default=None,
        alias="estimatedEffort",
        description="The estimated effort to complete the task.",
    )

    @field_validator("due_date")
    @classmethod
    def _check_iso_date(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"dueDate is not an ISO-8601 date: {value!r}")
        return value

class PrioritizationRequest(BaseModel):
    tasks: list[TaskSummary] = Field(description="A list of tasks to prioritize.")

class PrioritizationSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Strict: model output like "1" or true does not count as an index
    task_index: int = Field(
        strict=True,
        alias="taskId",
        validation_alias=AliasChoices("taskId", "taskIndex"),
        description="The index of the task in the input array.",
    )
    reason: str = Field(
        strict=True,
        min_length=1,
        description="The reason for the task prioritization suggestion.",
    )

class PrioritizationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prioritization_suggestions: list[PrioritizationSuggestion] = Field(
        alias="prioritizationSuggestions",
        description="A list of prioritization suggestions for the tasks.",
    )
