"""Registration and login against Facebook identities."""

import logging

from housemate.core.errors import ForbiddenError, NotFoundError
from housemate.core.logging import span
from housemate.core.sanitize import sanitize_ref
from housemate.domain.user import UserCreate, UserUpdate
from housemate.services.user_service import UserRepository


logger = logging.getLogger(__name__)


class AuthService:
    """Verifies tokens with the identity gateway before touching user records."""

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    async def register(self, fields: UserCreate) -> str:
        """Create the user after verifying their token; existing users are logged in instead.

        Returns:
            The registered (or logged-in) user ID

        Raises:
            ForbiddenError: If the access token does not belong to the user
            InvalidInputError: If a required registration field is missing
            UpstreamError: If the identity gateway cannot be reached
        """
        with span("auth_service.register"):
            user_id = sanitize_ref(fields.user_id)
            if user_id and await self._users.exists(user_id=user_id):
                logger.info("User %s already registered; logging in", user_id)
                return await self.login(user_id=user_id, access_token=fields.access_token, device_id=fields.device_id)

            if user_id and not await self._users.verify_access_token(user_id=user_id, access_token=fields.access_token):
                raise ForbiddenError(f"Invalid access token for user {user_id}")

            user = await self._users.create(fields)
            logger.info("Registered user %s", user.id)
            return user.id

    async def login(self, *, user_id: str, access_token: str | None, device_id: str | None = None) -> str:
        """Log an existing user in and refresh their stored token and device.

        The checks run in order so a missing user is reported before a bad token.

        Raises:
            NotFoundError: If the user does not exist
            ForbiddenError: If the access token does not belong to the user
            UpstreamError: If the identity gateway cannot be reached
        """
        with span("auth_service.login"):
            user_id = sanitize_ref(user_id)
            if not user_id or not await self._users.exists(user_id=user_id):
                raise NotFoundError(f"User {user_id} could not be found")

            if not await self._users.verify_access_token(user_id=user_id, access_token=access_token):
                raise ForbiddenError(f"Invalid access token for user {user_id}")

            await self._users.update(user_id=user_id, update=UserUpdate(access_token=access_token, device_id=device_id))
            logger.info("Logged in user %s", user_id)
            return user_id
