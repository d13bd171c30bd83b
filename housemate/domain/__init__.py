"""Domain models and DTOs."""

from housemate.domain.group import Group, Invite
from housemate.domain.task import Task, TaskCreate
from housemate.domain.user import User, UserCreate, UserUpdate


__all__ = [
    "Group",
    "Invite",
    "Task",
    "TaskCreate",
    "User",
    "UserCreate",
    "UserUpdate",
]
