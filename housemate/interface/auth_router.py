"""Register, login and logout endpoints."""

import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from housemate.core.config import Settings
from housemate.domain.user import UserCreate
from housemate.interface.dependencies import clear_session, get_services, get_settings, set_session_user
from housemate.services import Services


logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """Login payload."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    access_token: str = Field(..., alias="accessToken")
    device_id: str | None = Field(default=None, alias="deviceId")


@router.post("/register")
async def register(
    body: UserCreate,
    response: Response,
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Register a Facebook user, or log them in if they already exist."""
    user_id = await services.auth.register(body)
    set_session_user(response, settings, user_id)
    return {"msg": f"Logged in user '{user_id}'", "userId": user_id}


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Log in an existing user and refresh their token and device."""
    user_id = await services.auth.login(user_id=body.user_id, access_token=body.access_token, device_id=body.device_id)
    set_session_user(response, settings, user_id)
    return {"msg": f"Logged in user '{user_id}'", "userId": user_id}


@router.post("/logout")
async def logout(response: Response) -> dict:
    clear_session(response)
    return {"msg": "Logged out"}
