"""Invite service: deterministic invite codes and the membership gate around them."""

import base64
import hashlib
import logging

from housemate.core.config import constants
from housemate.core.errors import ForbiddenError, NotFoundError
from housemate.core.logging import span
from housemate.core.sanitize import sanitize_ref
from housemate.core.store import Store, join_path
from housemate.domain.group import Invite
from housemate.services.group_service import GroupRepository


logger = logging.getLogger(__name__)


def generate_invite_code(*, inviter: str, group_id: str) -> str:
    """Derive the invite code for an inviter and group.

    The code is the first characters of base32(sha1(inviter + group_id)). It
    is not a secret and two pairs can collide; the same pair always yields
    the same code.

    The digest is encoded with the RFC 4648 alphabet (A-Z, 2-7). Encoders
    using a Crockford-style 0-9A-Z alphabet give different codes for the same
    pair; invites already stored under such codes are still found, since
    lookup uses the literal stored code.
    """
    digest = hashlib.sha1(f"{inviter}{group_id}".encode(), usedforsecurity=False).digest()
    return base64.b32encode(digest).decode("ascii")[: constants.INVITE_CODE_LENGTH].upper()


def _invite_path(code: str) -> str:
    return join_path(constants.INVITES_PATH, code)


class InviteService:
    """Creates, looks up and redeems invites stored at invites/{code}."""

    def __init__(self, store: Store, groups: GroupRepository) -> None:
        self._store = store
        self._groups = groups

    async def create(self, *, inviter: str, group_id: str) -> str:
        """Write the invite for this inviter and group and return its code.

        Repeated invites for the same pair overwrite the same record.
        """
        inviter = sanitize_ref(inviter)
        group_id = sanitize_ref(group_id)
        invite = Invite(code=generate_invite_code(inviter=inviter, group_id=group_id), group_id=group_id, inviter=inviter)
        await self._store.set(_invite_path(invite.code), invite.to_record())
        logger.info("Created invite %s for group %s by %s", invite.code, group_id, inviter)
        return invite.code

    async def get(self, *, code: str) -> Invite:
        """Look up an invite by code.

        Raises:
            NotFoundError: If no invite exists for the code
        """
        code = sanitize_ref(code)
        record = await self._store.get(_invite_path(code))
        if record is None:
            raise NotFoundError(f"Invitation with code '{code}' could not be found")
        return Invite.model_validate(record)

    async def create_for_member(self, *, inviter: str, group_id: str) -> str:
        """Create an invite only if the inviter is a current member of the group.

        Raises:
            NotFoundError: If the group does not exist
            ForbiddenError: If the inviter is not a member
        """
        with span("invite_service.create_for_member"):
            if not await self._groups.is_member(group_id=group_id, user_id=inviter):
                raise ForbiddenError(f"User {sanitize_ref(inviter)} is not a member of group {sanitize_ref(group_id)}")
            return await self.create(inviter=inviter, group_id=group_id)

    async def redeem(self, *, code: str, user_id: str) -> str:
        """Join the invite's group and return its ID.

        Raises:
            NotFoundError: If the invite, user or group does not exist
            ConflictError: If the user is already a member
        """
        with span("invite_service.redeem"):
            invite = await self.get(code=code)
            await self._groups.add_user_to_group(user_id=user_id, group_id=invite.group_id)
            logger.info("User %s redeemed invite %s for group %s", user_id, invite.code, invite.group_id)
            return invite.group_id
