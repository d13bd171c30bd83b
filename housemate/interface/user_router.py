"""User endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from housemate.core.concurrency import fan_out
from housemate.core.sanitize import sanitize_ref
from housemate.interface.dependencies import get_services, require_session_user
from housemate.services import Services


router = APIRouter(prefix="/user", tags=["user"], dependencies=[Depends(require_session_user)])


class KudosRequest(BaseModel):
    """Kudos payload; non-positive or non-numeric amounts count as 1."""

    amount: Any = 1


@router.get("/{user_id}")
async def get_user(user_id: str, services: Services = Depends(get_services)) -> dict:
    """Return a user together with their resolved groups."""
    user_id = sanitize_ref(user_id)
    user, groups = await fan_out(
        [
            services.users.get(user_id=user_id),
            services.users.get_groups(user_id=user_id),
        ]
    )
    return {**user.to_public(), "groups": [group.to_public() for group in groups]}


@router.post("/{user_id}/kudos")
async def give_kudos(
    user_id: str,
    body: KudosRequest | None = None,
    services: Services = Depends(get_services),
) -> dict:
    total = await services.users.give_kudos(user_id=user_id, amount=body.amount if body else 1)
    return {"userId": sanitize_ref(user_id), "kudos": total}
