"""User repository: user records and their side of the group membership mirror."""

import logging
import math
from typing import TYPE_CHECKING, Any, Protocol

from housemate.core.concurrency import fan_out
from housemate.core.config import constants
from housemate.core.errors import InvalidInputError, NotFoundError
from housemate.core.logging import span
from housemate.core.sanitize import sanitize_ref
from housemate.core.store import Store, join_path
from housemate.domain.user import User, UserCreate, UserUpdate


if TYPE_CHECKING:
    from housemate.domain.group import Group
    from housemate.services.group_service import GroupRepository


logger = logging.getLogger(__name__)

REQUIRED_USER_FIELDS = ("user_id", "access_token", "first_name", "last_name", "photo")


class TokenVerifier(Protocol):
    """Identity gateway that checks a token's subject."""

    async def verify_access_token(self, *, user_id: str, access_token: str | None) -> bool: ...


def _user_path(user_id: str) -> str:
    return join_path(constants.USERS_PATH, user_id)


def _groups_path(user_id: str) -> str:
    return join_path(constants.USERS_PATH, user_id, "groups")


def _kudos_increment(amount: Any) -> int:
    """Floor a kudos amount, falling back to 1 for anything that is not a positive number."""
    if isinstance(amount, bool) or not isinstance(amount, int | float):
        return 1
    if math.isnan(amount) or math.isinf(amount) or amount <= 0:
        return 1
    return max(1, math.floor(amount))


class UserRepository:
    """CRUD and membership queries for users/{id}.

    The group side of lookups goes through the GroupRepository, which is
    attached once both repositories exist (see ``build_services``).
    """

    def __init__(self, store: Store, token_verifier: TokenVerifier | None = None) -> None:
        self._store = store
        self._token_verifier = token_verifier
        self._groups: GroupRepository | None = None

    def attach_groups(self, groups: "GroupRepository") -> None:
        self._groups = groups

    async def get(self, *, user_id: str) -> User:
        """Get a user by ID.

        Raises:
            NotFoundError: If the user does not exist
        """
        user_id = sanitize_ref(user_id)
        record = await self._store.get(_user_path(user_id))
        if record is None:
            raise NotFoundError(f"User with ID {user_id} could not be found")
        return User.model_validate({"id": user_id, **record})

    async def exists(self, *, user_id: str) -> bool:
        return await self._store.exists(_user_path(sanitize_ref(user_id)))

    async def create(self, fields: UserCreate) -> User:
        """Write a full user record, overwriting any existing one.

        Args:
            fields: Registration fields; user_id, access_token, first_name,
                last_name and photo are required

        Returns:
            The created user

        Raises:
            InvalidInputError: If a required field is missing or blank
        """
        with span("user_service.create"):
            missing = [name for name in REQUIRED_USER_FIELDS if not getattr(fields, name)]
            if missing:
                raise InvalidInputError(f"Missing required user fields: {', '.join(missing)}", fields=missing)

            user_id = sanitize_ref(fields.user_id)
            user = User(
                id=user_id,
                access_token=fields.access_token,
                device_id=fields.device_id,
                first_name=fields.first_name,
                last_name=fields.last_name,
                full_name=f"{fields.first_name} {fields.last_name}",
                photo=fields.photo,
                kudos=0,
            )
            await self._store.set(_user_path(user_id), user.model_dump(by_alias=True, exclude={"group_entries"}))
            logger.info("Created user %s", user_id)
            return user

    async def update(self, *, user_id: str, update: UserUpdate | dict[str, Any]) -> None:
        """Merge fields into users/{id}.

        There is no existence check; updating a missing user creates a partial record.
        """
        user_id = sanitize_ref(user_id)
        if isinstance(update, UserUpdate):
            partial = update.model_dump(by_alias=True, exclude_none=True)
        else:
            partial = dict(update)
        if not partial:
            return
        await self._store.update(_user_path(user_id), partial)
        logger.info("Updated user %s fields=%s", user_id, sorted(partial))

    async def give_kudos(self, *, user_id: str, amount: Any = 1) -> int:
        """Atomically add kudos to a user and return the new total.

        Raises:
            NotFoundError: If the user does not exist
        """
        with span("user_service.give_kudos"):
            user_id = sanitize_ref(user_id)
            if not await self.exists(user_id=user_id):
                raise NotFoundError(f"User with ID {user_id} could not be found")

            increment = _kudos_increment(amount)
            total = await self._store.transaction(
                join_path(_user_path(user_id), "kudos"),
                lambda current: (current if isinstance(current, int) else 0) + increment,
            )
            logger.info("Gave %d kudos to user %s (total=%s)", increment, user_id, total)
            return int(total)

    async def get_groups(self, *, user_id: str) -> list["Group"]:
        """Resolve the user's membership entries to full groups, in entry order.

        Raises:
            NotFoundError: If the user, or any referenced group, does not exist
        """
        with span("user_service.get_groups"):
            user = await self.get(user_id=user_id)
            if self._groups is None:
                raise RuntimeError("UserRepository is not attached to a GroupRepository")
            return await fan_out(self._groups.get(group_id=group_id) for group_id in user.group_ids)

    async def add_group(self, *, user_id: str, group_id: str) -> str:
        """Append a {id: group_id} entry to the user's groups and return its entry key.

        Raises:
            NotFoundError: If the user does not exist
        """
        user_id = sanitize_ref(user_id)
        group_id = sanitize_ref(group_id)
        if not await self.exists(user_id=user_id):
            raise NotFoundError(f"User with ID {user_id} could not be found")

        entry_key = await self._store.push(_groups_path(user_id), {"id": group_id})
        logger.info("Added group %s to user %s (entry=%s)", group_id, user_id, entry_key)
        return entry_key

    async def remove_group(self, *, user_id: str, group_id: str) -> bool:
        """Remove the user's membership entry for a group.

        Returns False, without failing, when no entry matches.
        """
        user_id = sanitize_ref(user_id)
        group_id = sanitize_ref(group_id)
        matches = await self._store.query_ordered_range(
            _groups_path(user_id),
            "id",
            start_at=group_id,
            end_at=group_id,
            limit=1,
        )
        if not matches:
            logger.warning("No group entry for group %s on user %s; nothing removed", group_id, user_id)
            return False

        entry_key, _ = matches[0]
        await self._store.remove(join_path(_groups_path(user_id), entry_key))
        logger.info("Removed group %s from user %s (entry=%s)", group_id, user_id, entry_key)
        return True

    async def verify_access_token(self, *, user_id: str, access_token: str | None) -> bool:
        """Check the token with the identity gateway.

        Raises:
            UpstreamError: On transport failure or a malformed gateway response
        """
        if self._token_verifier is None:
            raise RuntimeError("No token verifier configured")
        return await self._token_verifier.verify_access_token(user_id=sanitize_ref(user_id), access_token=access_token)
