"""Service layer wiring."""

from dataclasses import dataclass

from housemate.core.config import Settings
from housemate.core.store import Store
from housemate.interface.facebook_client import FacebookClient
from housemate.interface.push_sender import PushSender
from housemate.services.auth_service import AuthService
from housemate.services.group_service import GroupRepository
from housemate.services.invite_service import InviteService
from housemate.services.notification_service import NotificationService
from housemate.services.user_service import TokenVerifier, UserRepository


@dataclass
class Services:
    """Every repository and service, built over one store."""

    store: Store
    users: UserRepository
    groups: GroupRepository
    invites: InviteService
    notifications: NotificationService
    auth: AuthService


def build_services(
    store: Store,
    settings: Settings,
    *,
    token_verifier: TokenVerifier | None = None,
    push_sender: PushSender | None = None,
) -> Services:
    """Wire the repositories together over ``store``.

    The identity gateway and push sender default to the HTTP clients built
    from ``settings``; tests pass their own.
    """
    users = UserRepository(store, token_verifier=token_verifier or FacebookClient(settings))
    groups = GroupRepository(store, users)
    users.attach_groups(groups)

    return Services(
        store=store,
        users=users,
        groups=groups,
        invites=InviteService(store, groups),
        notifications=NotificationService(push_sender or PushSender(settings)),
        auth=AuthService(users),
    )


__all__ = ["Services", "build_services"]
