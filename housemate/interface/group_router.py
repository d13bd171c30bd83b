"""Group, membership and task endpoints."""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from housemate.core.concurrency import fan_out
from housemate.core.config import constants
from housemate.core.sanitize import sanitize_ref
from housemate.domain.task import TaskCreate
from housemate.interface.dependencies import get_services, require_session_user
from housemate.services import Services


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/group", tags=["group"])


class GroupCreateRequest(BaseModel):
    """Group creation payload; the creator is the logged-in user."""

    name: str | None = None


class AddMemberRequest(BaseModel):
    """Payload naming the user to add to a group."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")


@router.get("/{group_id}")
async def get_group(
    group_id: str,
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> dict:
    """Return a group together with its members' user records."""
    group, members = await fan_out(
        [
            services.groups.get(group_id=group_id),
            services.groups.get_members(group_id=group_id),
        ]
    )
    return {**group.to_public(), "members": [member.to_public() for member in members]}


@router.post("")
async def create_group(
    body: GroupCreateRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(require_session_user),
) -> dict:
    group_id = await services.groups.create(creator_id=user_id, name=body.name or "")
    return {"msg": f"Created group '{group_id}'", "groupId": group_id}


@router.put("/{group_id}")
async def add_member(
    group_id: str,
    body: AddMemberRequest,
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> dict:
    await services.groups.add_user_to_group(user_id=body.user_id, group_id=group_id)
    return {"msg": f"Added {sanitize_ref(body.user_id)} to group {sanitize_ref(group_id)}"}


@router.delete("/{group_id}")
async def delete_group(
    group_id: str,
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> dict:
    await services.groups.remove(group_id=group_id)
    return {"msg": f"Deleted group {sanitize_ref(group_id)}"}


@router.delete("/{group_id}/member/{member_id}")
async def remove_member(
    group_id: str,
    member_id: str,
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> dict:
    await services.groups.remove_user_from_group(user_id=member_id, group_id=group_id)
    return {"msg": f"Removed {sanitize_ref(member_id)} from group {sanitize_ref(group_id)}"}


@router.post("/{group_id}/task")
async def create_task(
    group_id: str,
    body: TaskCreate,
    services: Services = Depends(get_services),
    user_id: str = Depends(require_session_user),
) -> dict:
    """Create a task; the creator defaults to the logged-in user."""
    task = await services.groups.create_task(
        group_id=group_id,
        creator_id=body.creator or user_id,
        title=body.title,
        assigned_to=body.assigned_to,
    )
    return {"taskId": task.id}


@router.delete("/{group_id}/task/{task_id}")
async def delete_task(
    group_id: str,
    task_id: str,
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> dict:
    await services.groups.delete_task(group_id=group_id, task_id=task_id)
    return {"msg": f"Deleted task {sanitize_ref(task_id)}"}


@router.get("/{group_id}/tasks")
async def list_tasks(
    group_id: str,
    limit: int = Query(default=constants.DEFAULT_TASK_LIMIT, ge=1, le=100),
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> list[dict]:
    tasks = await services.groups.get_tasks(group_id=group_id, limit=limit)
    return [task.to_record() for task in tasks]


@router.get("/{group_id}/completed")
async def list_completed_tasks(
    group_id: str,
    limit: int = Query(default=constants.DEFAULT_TASK_LIMIT, ge=1, le=100),
    services: Services = Depends(get_services),
    _user_id: str = Depends(require_session_user),
) -> list[dict]:
    tasks = await services.groups.get_completed_tasks(group_id=group_id, limit=limit)
    return [task.to_record() for task in tasks]


@router.post("/{group_id}/complete/{task_id}")
async def complete_task(
    group_id: str,
    task_id: str,
    services: Services = Depends(get_services),
    user_id: str = Depends(require_session_user),
) -> dict:
    """Mark a task completed by the logged-in user and notify the group."""
    task, members = await fan_out(
        [
            services.groups.complete_task(group_id=group_id, task_id=task_id, completer_id=user_id),
            services.groups.get_members(group_id=group_id),
        ]
    )
    results = await services.notifications.notify_task_completed(members=members, completer_id=user_id, task=task)
    return {
        "msg": f"Successfully marked task '{sanitize_ref(task_id)}' as completed by '{user_id}'",
        "completedId": task.id,
        "notified": sum(1 for result in results if result.success and not result.skipped),
    }
