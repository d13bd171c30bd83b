"""Invite endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from housemate.interface.dependencies import get_services, require_session_user
from housemate.services import Services


router = APIRouter(prefix="/invite", tags=["invite"])


class InviteCreateRequest(BaseModel):
    """Invite payload; the inviter is the logged-in user."""

    model_config = ConfigDict(populate_by_name=True)

    group_id: str = Field(..., alias="groupId")


@router.get("/{code}")
async def get_invite(code: str, services: Services = Depends(get_services)) -> dict:
    """Return the group and inviter behind an invite code."""
    invite = await services.invites.get(code=code)
    return invite.to_record()


@router.post("")
async def create_invite(
    body: InviteCreateRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(require_session_user),
) -> dict:
    code = await services.invites.create_for_member(inviter=user_id, group_id=body.group_id)
    return {"code": code}


@router.post("/{code}/redeem")
async def redeem_invite(
    code: str,
    services: Services = Depends(get_services),
    user_id: str = Depends(require_session_user),
) -> dict:
    group_id = await services.invites.redeem(code=code, user_id=user_id)
    return {"msg": f"Added {user_id} to group {group_id}", "groupId": group_id}
