"""Group repository: groups, their members, open tasks and completed-task history.

Group membership is stored twice, as groups/{id}/members entries and as
users/{id}/groups entries. The store cannot write both sides atomically, so
every operation that touches membership writes the two sides one path at a
time. When a later step fails the earlier writes stay committed; the failure
is logged with the ids involved and re-raised to the caller, who must treat
the operation as possibly partially applied.
"""

import logging

from housemate.core.concurrency import fan_out
from housemate.core.config import constants
from housemate.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from housemate.core.logging import log_with_context, span
from housemate.core.sanitize import sanitize_ref
from housemate.core.store import KEY_ORDER, Store, join_path
from housemate.domain.group import Group
from housemate.domain.task import Task
from housemate.domain.user import User
from housemate.services.user_service import UserRepository


logger = logging.getLogger(__name__)


def _group_path(group_id: str, *children: str) -> str:
    return join_path(constants.GROUPS_PATH, group_id, *children)


class GroupRepository:
    """Multi-step operations over groups/{id} that keep the membership mirror in sync."""

    def __init__(self, store: Store, users: UserRepository) -> None:
        self._store = store
        self._users = users

    async def get(self, *, group_id: str) -> Group:
        """Get a group by ID.

        Raises:
            NotFoundError: If the group does not exist
        """
        group_id = sanitize_ref(group_id)
        record = await self._store.get(_group_path(group_id))
        if record is None:
            raise NotFoundError(f"Could not find group '{group_id}'")
        return Group.model_validate({"id": group_id, **record})

    async def exists(self, *, group_id: str) -> bool:
        return await self._store.exists(_group_path(sanitize_ref(group_id)))

    async def get_member_ids(self, *, group_id: str) -> list[str]:
        """Return member ids in entry order.

        Raises:
            NotFoundError: If the group does not exist
        """
        group = await self.get(group_id=group_id)
        return group.member_ids

    async def is_member(self, *, group_id: str, user_id: str) -> bool:
        """Return True if the user has a member entry in the group.

        Raises:
            NotFoundError: If the group does not exist
        """
        return sanitize_ref(user_id) in await self.get_member_ids(group_id=group_id)

    async def get_members(self, *, group_id: str) -> list[User]:
        """Resolve every member entry to a full user record.

        Raises:
            NotFoundError: If the group, or any member's user record, does not exist
        """
        with span("group_service.get_members"):
            member_ids = await self.get_member_ids(group_id=group_id)
            return await fan_out(self._users.get(user_id=member_id) for member_id in member_ids)

    async def create(self, *, creator_id: str, name: str) -> str:
        """Create a group and link its creator as the first member.

        The group node is written first; the members entry and the creator's
        groups entry are then written in parallel. If either fails the group
        is left in place, possibly linked on one side only.

        Returns:
            The new group ID

        Raises:
            InvalidInputError: If the creator or name is missing
            NotFoundError: If the creator does not exist (after the group node is written)
        """
        with span("group_service.create"):
            creator_id = sanitize_ref(creator_id)
            if not creator_id or not name or not name.strip():
                raise InvalidInputError("A group needs a creator and a name", fields=["userId", "name"])

            group_id = self._store.push_child(constants.GROUPS_PATH)
            await self._store.set(_group_path(group_id), {"id": group_id, "creator": creator_id, "name": name})
            logger.info("Created group %s (%s) for creator %s", group_id, name, creator_id)

            try:
                await fan_out(
                    [
                        self._store.push(_group_path(group_id, "members"), {"id": creator_id}),
                        self._users.add_group(user_id=creator_id, group_id=group_id),
                    ]
                )
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    "Group created but creator link incomplete",
                    group_id=group_id,
                    user_id=creator_id,
                    error=str(e),
                )
                raise

            return group_id

    async def add_user_to_group(self, *, user_id: str, group_id: str) -> None:
        """Add a user to a group on both sides of the membership mirror.

        Phase 1 checks, in parallel, that the user exists and is not already a
        member. Phase 2 writes both membership entries in parallel; a failure
        there is not rolled back. Two concurrent calls for the same pair can
        both pass phase 1 and leave duplicate entries.

        Raises:
            NotFoundError: If the user or group does not exist
            ConflictError: If the user is already a member
        """
        with span("group_service.add_user_to_group"):
            user_id = sanitize_ref(user_id)
            group_id = sanitize_ref(group_id)

            async def ensure_user_exists() -> None:
                if not await self._users.exists(user_id=user_id):
                    raise NotFoundError(f"User with ID {user_id} could not be found")

            async def ensure_not_member() -> None:
                members = await self.get_members(group_id=group_id)
                if any(member.id == user_id for member in members):
                    raise ConflictError(f"User {user_id} is already a member of group {group_id}")

            await fan_out([ensure_user_exists(), ensure_not_member()])

            try:
                await fan_out(
                    [
                        self._store.push(_group_path(group_id, "members"), {"id": user_id}),
                        self._users.add_group(user_id=user_id, group_id=group_id),
                    ]
                )
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    "Membership write incomplete",
                    group_id=group_id,
                    user_id=user_id,
                    error=str(e),
                )
                raise

            logger.info("Added user %s to group %s", user_id, group_id)

    async def _remove_member_entry(self, *, group_id: str, user_id: str) -> bool:
        matches = await self._store.query_ordered_range(
            _group_path(group_id, "members"),
            "id",
            start_at=user_id,
            end_at=user_id,
            limit=1,
        )
        if not matches:
            logger.warning("No member entry for user %s in group %s; nothing removed", user_id, group_id)
            return False

        entry_key, _ = matches[0]
        await self._store.remove(_group_path(group_id, "members", entry_key))
        return True

    async def remove_user_from_group(self, *, user_id: str, group_id: str) -> None:
        """Remove a user from a group on both sides of the membership mirror.

        Missing entries on either side are tolerated.

        Raises:
            NotFoundError: If the group does not exist
        """
        with span("group_service.remove_user_from_group"):
            user_id = sanitize_ref(user_id)
            group_id = sanitize_ref(group_id)
            if not await self.exists(group_id=group_id):
                raise NotFoundError(f"Could not find group '{group_id}'")

            await fan_out(
                [
                    self._remove_member_entry(group_id=group_id, user_id=user_id),
                    self._users.remove_group(user_id=user_id, group_id=group_id),
                ]
            )
            logger.info("Removed user %s from group %s", user_id, group_id)

    async def remove(self, *, group_id: str) -> None:
        """Delete a group, then prune it from every former member's groups.

        The member list is captured before the group node is deleted. The
        group is not restored if pruning a member fails.

        Raises:
            NotFoundError: If the group does not exist
        """
        with span("group_service.remove"):
            group_id = sanitize_ref(group_id)

            # 1. Snapshot members, then delete the group node
            member_ids = await self.get_member_ids(group_id=group_id)
            await self._store.remove(_group_path(group_id))
            logger.info("Deleted group %s; pruning %d member links", group_id, len(member_ids))

            # 2. Remove the group from each former member
            try:
                await fan_out(
                    self._users.remove_group(user_id=member_id, group_id=group_id) for member_id in member_ids
                )
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    "Group deleted but member links not fully pruned",
                    group_id=group_id,
                    member_ids=member_ids,
                    error=str(e),
                )
                raise

    async def create_task(
        self,
        *,
        group_id: str,
        creator_id: str,
        title: str | None,
        assigned_to: str | None = None,
    ) -> Task:
        """Create an open task in a group.

        Raises:
            InvalidInputError: If the title is missing
            NotFoundError: If the group does not exist
            ForbiddenError: If the creator or the assignee is not a member
        """
        with span("group_service.create_task"):
            if not title or not title.strip():
                raise InvalidInputError("No title specified", fields=["title"])

            group_id = sanitize_ref(group_id)
            creator_id = sanitize_ref(creator_id)
            assigned_to = sanitize_ref(assigned_to) if assigned_to else None

            member_ids = await self.get_member_ids(group_id=group_id)
            if creator_id not in member_ids:
                raise ForbiddenError(f"User {creator_id} not in group {group_id}")
            if assigned_to is not None and assigned_to not in member_ids:
                raise ForbiddenError(f"User {assigned_to} not in group {group_id}")

            tasks_path = _group_path(group_id, "tasks")
            task = Task(
                id=self._store.push_child(tasks_path),
                title=title,
                creator=creator_id,
                assigned_to=assigned_to,
            )
            await self._store.set(join_path(tasks_path, task.id), task.to_record())
            logger.info("Created task %s in group %s", task.id, group_id)
            return task

    async def complete_task(self, *, group_id: str, task_id: str, completer_id: str) -> Task:
        """Move a task from tasks to completed under a new ID.

        The completed copy is written before the original is deleted; a crash
        between the two leaves the task in both collections.

        Returns:
            The completed task, carrying its new ID

        Raises:
            NotFoundError: If the group or task does not exist
            ForbiddenError: If the completer is not a member
        """
        with span("group_service.complete_task"):
            group_id = sanitize_ref(group_id)
            task_id = sanitize_ref(task_id)
            completer_id = sanitize_ref(completer_id)

            # 1. Collect member ids
            member_ids = await self.get_member_ids(group_id=group_id)

            # 2. Guarantee the completer is a member
            if completer_id not in member_ids:
                raise ForbiddenError(f"User {completer_id} is not a member of group {group_id}")

            # 3. Load the task
            task_path = _group_path(group_id, "tasks", task_id)
            record = await self._store.get(task_path)
            if not isinstance(record, dict):
                raise NotFoundError(f"Could not find task {task_id}")

            # 4. Copy under completed with a fresh ID, then delete the original
            completed_path = _group_path(group_id, "completed")
            completed_id = self._store.push_child(completed_path)
            completed_record = {**record, "id": completed_id, "completedBy": completer_id}
            await self._store.set(join_path(completed_path, completed_id), completed_record)
            completed = Task.model_validate(completed_record)

            try:
                await self._store.remove(task_path)
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    "Completed copy written but original task not removed",
                    group_id=group_id,
                    task_id=task_id,
                    completed_id=completed.id,
                    error=str(e),
                )
                raise

            logger.info("Task %s in group %s completed by %s as %s", task_id, group_id, completer_id, completed.id)
            return completed

    async def delete_task(self, *, group_id: str, task_id: str) -> None:
        """Delete an open task without archiving it.

        Raises:
            NotFoundError: If the task does not exist
        """
        with span("group_service.delete_task"):
            task_path = _group_path(sanitize_ref(group_id), "tasks", sanitize_ref(task_id))
            if not await self._store.exists(task_path):
                raise NotFoundError(f"Could not find task {sanitize_ref(task_id)}")
            await self._store.remove(task_path)
            logger.info("Deleted task %s from group %s", task_id, group_id)

    async def _latest(self, *, group_id: str, collection: str, limit: int) -> list[Task]:
        group_id = sanitize_ref(group_id)
        if not await self.exists(group_id=group_id):
            raise NotFoundError(f"Could not find group '{group_id}'")

        entries = await self._store.query_ordered_range(
            _group_path(group_id, collection),
            KEY_ORDER,
            limit=limit,
            from_end=True,
        )
        return [Task.model_validate({"id": key, **value}) for key, value in reversed(entries)]

    async def get_tasks(self, *, group_id: str, limit: int = constants.DEFAULT_TASK_LIMIT) -> list[Task]:
        """Return up to ``limit`` most recently created open tasks, newest first.

        Raises:
            NotFoundError: If the group does not exist
        """
        return await self._latest(group_id=group_id, collection="tasks", limit=limit)

    async def get_completed_tasks(self, *, group_id: str, limit: int = constants.DEFAULT_TASK_LIMIT) -> list[Task]:
        """Return up to ``limit`` most recently completed tasks, newest first.

        Raises:
            NotFoundError: If the group does not exist
        """
        return await self._latest(group_id=group_id, collection="completed", limit=limit)
