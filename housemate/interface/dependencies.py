"""FastAPI dependencies: wired services and the signed session cookie."""

import logging

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from housemate.core.config import Settings, constants
from housemate.core.errors import ForbiddenError
from housemate.services import Services


logger = logging.getLogger(__name__)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.require_credential("secret_key", "Session secret"), salt="user-session")


def set_session_user(response: Response, settings: Settings, user_id: str) -> None:
    """Store the logged-in user ID in a signed session cookie."""
    response.set_cookie(
        key=constants.SESSION_COOKIE_NAME,
        value=_serializer(settings).dumps({"user_id": user_id}),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=constants.SESSION_MAX_AGE_SECONDS,
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(constants.SESSION_COOKIE_NAME)


def require_session_user(request: Request) -> str:
    """Return the logged-in user ID, or fail with 403 when there is no valid session."""
    token = request.cookies.get(constants.SESSION_COOKIE_NAME)
    if not token:
        raise ForbiddenError("User must be logged in to access this resource")

    try:
        data = _serializer(get_settings(request)).loads(token, max_age=constants.SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired) as err:
        logger.warning("session_tampered_or_expired", extra={"path": request.url.path})
        raise ForbiddenError("User must be logged in to access this resource") from err

    user_id = data.get("user_id") if isinstance(data, dict) else None
    if not user_id:
        raise ForbiddenError("User must be logged in to access this resource")
    return user_id
