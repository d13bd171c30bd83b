"""Task domain models."""

from pydantic import BaseModel, ConfigDict, Field


class Task(BaseModel):
    """Task stored under groups/{id}/tasks or, once done, groups/{id}/completed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Task ID (regenerated on completion)")
    title: str = Field(default="", description="Task title")
    creator: str = Field(default="", description="User ID of the task creator")
    assigned_to: str | None = Field(default=None, alias="assignedTo", description="Assigned user ID")
    completed_by: str | None = Field(default=None, alias="completedBy", description="Completer, set once completed")

    def to_record(self) -> dict:
        """Return the stored representation."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TaskCreate(BaseModel):
    """Payload for creating a task."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    creator: str | None = None
    assigned_to: str | None = Field(default=None, alias="assignedTo")
