"""Tests for the group repository and the membership mirror."""

import asyncio

import pytest

from housemate.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError, StoreError
from housemate.services import build_services
from tests.unit.conftest import make_user_fields
from tests.unit.mocks import FlakyStore, SlowPushStore


@pytest.fixture
async def household(services, create_user):
    """Users u1, u2, u3 with a group 'Home' created by u1."""
    for user_id in ("u1", "u2", "u3"):
        await create_user(user_id, first_name=user_id.upper())
    group_id = await services.groups.create(creator_id="u1", name="Home")
    return group_id


async def _group_side(store, group_id: str) -> list[str]:
    members = await store.get(f"groups/{group_id}/members") or {}
    return [entry["id"] for _, entry in sorted(members.items())]


async def _user_side(store, user_id: str) -> list[str]:
    groups = await store.get(f"users/{user_id}/groups") or {}
    return [entry["id"] for _, entry in sorted(groups.items())]


@pytest.mark.unit
class TestGroupCreate:
    """Test group creation."""

    async def test_creator_is_only_member(self, services, store, household):
        group = await services.groups.get(group_id=household)
        assert group.creator == "u1"
        assert group.name == "Home"
        assert group.member_ids == ["u1"]
        assert await _user_side(store, "u1") == [household]

    async def test_group_node_fields(self, store, household):
        record = await store.get(f"groups/{household}")
        assert record["id"] == household
        assert record["creator"] == "u1"
        assert record["name"] == "Home"

    @pytest.mark.parametrize(("creator_id", "name"), [("", "Home"), ("u1", ""), ("u1", "   ")])
    async def test_requires_creator_and_name(self, services, store, creator_id, name):
        with pytest.raises(InvalidInputError):
            await services.groups.create(creator_id=creator_id, name=name)
        assert await store.get("groups") is None

    async def test_missing_creator_leaves_group_node(self, services, store):
        """The group node is written before the creator is linked and is not rolled back."""
        with pytest.raises(NotFoundError):
            await services.groups.create(creator_id="ghost", name="Home")
        groups = await store.get("groups")
        assert len(groups) == 1

    async def test_creator_link_failure_propagates(self, settings, token_verifier, push_sender):
        store = FlakyStore()
        services = build_services(store, settings, token_verifier=token_verifier, push_sender=push_sender)
        await services.users.create(make_user_fields("u1"))
        store.fail_set_prefixes.append("users/u1/groups")

        with pytest.raises(StoreError):
            await services.groups.create(creator_id="u1", name="Home")
        assert len(await store.get("groups")) == 1
        assert await store.get("users/u1/groups") is None


@pytest.mark.unit
class TestGroupReads:
    async def test_get_missing_group(self, services):
        with pytest.raises(NotFoundError, match="Could not find group 'nope'"):
            await services.groups.get(group_id="nope")

    async def test_exists(self, services, household):
        assert await services.groups.exists(group_id=household)
        assert not await services.groups.exists(group_id="nope")

    async def test_get_members_resolves_users(self, services, household):
        await services.groups.add_user_to_group(user_id="u2", group_id=household)
        members = await services.groups.get_members(group_id=household)
        assert [member.id for member in members] == ["u1", "u2"]
        assert members[1].first_name == "U2"

    async def test_get_members_fails_on_dangling_member(self, services, store, household):
        """One member entry pointing at a missing user fails the whole lookup."""
        await store.push(f"groups/{household}/members", {"id": "ghost"})

        with pytest.raises(NotFoundError, match="ghost"):
            await services.groups.get_members(group_id=household)

    async def test_get_members_missing_group(self, services):
        with pytest.raises(NotFoundError):
            await services.groups.get_members(group_id="nope")

    async def test_is_member(self, services, household):
        assert await services.groups.is_member(group_id=household, user_id="u1")
        assert not await services.groups.is_member(group_id=household, user_id="u2")

    async def test_is_member_missing_group(self, services):
        with pytest.raises(NotFoundError):
            await services.groups.is_member(group_id="nope", user_id="u1")


@pytest.mark.unit
class TestMembership:
    """Test adding and removing members on both sides of the mirror."""

    async def test_add_user_writes_both_sides(self, services, store, household):
        await services.groups.add_user_to_group(user_id="u2", group_id=household)

        assert await _group_side(store, household) == ["u1", "u2"]
        assert await _user_side(store, "u2") == [household]

    async def test_add_existing_member_conflicts(self, services, store, household):
        with pytest.raises(ConflictError):
            await services.groups.add_user_to_group(user_id="u1", group_id=household)
        assert await _group_side(store, household) == ["u1"]
        assert await _user_side(store, "u1") == [household]

    async def test_add_missing_user(self, services, store, household):
        with pytest.raises(NotFoundError):
            await services.groups.add_user_to_group(user_id="ghost", group_id=household)
        assert await _group_side(store, household) == ["u1"]
        assert await store.get("users/ghost") is None

    async def test_add_to_missing_group(self, services, store, create_user):
        await create_user("u2")
        with pytest.raises(NotFoundError):
            await services.groups.add_user_to_group(user_id="u2", group_id="nope")
        assert await _user_side(store, "u2") == []

    async def test_partial_join_is_not_rolled_back(self, settings, token_verifier, push_sender):
        """If the user side of a join fails, the group side stays written."""
        store = FlakyStore()
        services = build_services(store, settings, token_verifier=token_verifier, push_sender=push_sender)
        for user_id in ("u1", "u2"):
            await services.users.create(make_user_fields(user_id))
        group_id = await services.groups.create(creator_id="u1", name="Home")
        store.fail_set_prefixes.append("users/u2/groups")

        with pytest.raises(StoreError):
            await services.groups.add_user_to_group(user_id="u2", group_id=group_id)

        assert await _group_side(store, group_id) == ["u1", "u2"]
        assert await _user_side(store, "u2") == []

    async def test_remove_user_from_group(self, services, store, household):
        await services.groups.add_user_to_group(user_id="u2", group_id=household)
        await services.groups.remove_user_from_group(user_id="u2", group_id=household)

        assert await _group_side(store, household) == ["u1"]
        assert await _user_side(store, "u2") == []

    async def test_remove_non_member_is_noop(self, services, store, household):
        await services.groups.remove_user_from_group(user_id="u3", group_id=household)
        assert await _group_side(store, household) == ["u1"]

    async def test_remove_from_missing_group(self, services):
        with pytest.raises(NotFoundError):
            await services.groups.remove_user_from_group(user_id="u1", group_id="nope")


@pytest.mark.unit
class TestGroupRemove:
    """Test group deletion and member pruning."""

    async def test_remove_prunes_every_member(self, services, store, household):
        await services.groups.add_user_to_group(user_id="u2", group_id=household)
        other = await services.groups.create(creator_id="u1", name="Office")

        await services.groups.remove(group_id=household)

        with pytest.raises(NotFoundError):
            await services.groups.get(group_id=household)
        assert await _user_side(store, "u1") == [other]
        assert await _user_side(store, "u2") == []

    async def test_remove_missing_group(self, services):
        with pytest.raises(NotFoundError):
            await services.groups.remove(group_id="nope")

    async def test_prune_failure_propagates_after_delete(self, settings, token_verifier, push_sender):
        """The group stays deleted when pruning a member fails."""
        store = FlakyStore()
        services = build_services(store, settings, token_verifier=token_verifier, push_sender=push_sender)
        for user_id in ("u1", "u2"):
            await services.users.create(make_user_fields(user_id))
        group_id = await services.groups.create(creator_id="u1", name="Home")
        await services.groups.add_user_to_group(user_id="u2", group_id=group_id)
        store.fail_remove_prefixes.append("users/u2/groups")

        with pytest.raises(StoreError):
            await services.groups.remove(group_id=group_id)
        assert not await services.groups.exists(group_id=group_id)
        assert await _user_side(store, "u2") == [group_id]


@pytest.mark.unit
class TestTasks:
    """Test task creation, completion, deletion and listing."""

    async def test_create_task(self, services, store, household):
        await services.groups.add_user_to_group(user_id="u2", group_id=household)
        task = await services.groups.create_task(
            group_id=household, creator_id="u1", title="Bins", assigned_to="u2"
        )
        record = await store.get(f"groups/{household}/tasks/{task.id}")
        assert record == {"id": task.id, "title": "Bins", "creator": "u1", "assignedTo": "u2"}

    async def test_create_task_requires_title(self, services, household):
        with pytest.raises(InvalidInputError, match="No title specified"):
            await services.groups.create_task(group_id=household, creator_id="u1", title="  ")

    async def test_create_task_missing_group(self, services, household):
        with pytest.raises(NotFoundError):
            await services.groups.create_task(group_id="nope", creator_id="u1", title="Bins")

    async def test_create_task_by_non_member(self, services, household):
        with pytest.raises(ForbiddenError, match="User u2 not in group"):
            await services.groups.create_task(group_id=household, creator_id="u2", title="Bins")

    async def test_create_task_assigned_to_non_member(self, services, household):
        with pytest.raises(ForbiddenError, match="User u3 not in group"):
            await services.groups.create_task(group_id=household, creator_id="u1", title="Bins", assigned_to="u3")

    async def test_complete_moves_task(self, services, store, household):
        """Completing moves the record under a new id; counts are conserved."""
        task = await services.groups.create_task(group_id=household, creator_id="u1", title="Dishes")
        await services.groups.create_task(group_id=household, creator_id="u1", title="Bins")

        completed = await services.groups.complete_task(group_id=household, task_id=task.id, completer_id="u1")

        tasks = await store.get(f"groups/{household}/tasks")
        done = await store.get(f"groups/{household}/completed")
        assert len(tasks) + len(done) == 2
        assert task.id not in tasks
        assert completed.id != task.id
        assert done[completed.id] == {
            "id": completed.id,
            "title": "Dishes",
            "creator": "u1",
            "completedBy": "u1",
        }

    async def test_complete_keeps_extra_fields(self, services, store, household):
        """Fields outside the Task model survive the move to completed."""
        await store.set(
            f"groups/{household}/tasks/t1",
            {"id": "t1", "title": "Scrub", "creator": "u1", "notes": "use the green sponge"},
        )

        completed = await services.groups.complete_task(group_id=household, task_id="t1", completer_id="u1")

        record = await store.get(f"groups/{household}/completed/{completed.id}")
        assert record == {
            "id": completed.id,
            "title": "Scrub",
            "creator": "u1",
            "notes": "use the green sponge",
            "completedBy": "u1",
        }
        assert await store.get(f"groups/{household}/tasks") is None

    async def test_legacy_task_record_does_not_break_group_reads(self, services, store, household):
        """A task record missing fields does not stop the group from loading."""
        await store.set(f"groups/{household}/tasks/t0", {"id": "t0", "title": "Old"})

        assert await services.groups.get_member_ids(group_id=household) == ["u1"]
        assert await services.groups.is_member(group_id=household, user_id="u1")
        completed = await services.groups.complete_task(group_id=household, task_id="t0", completer_id="u1")
        assert completed.title == "Old"
        assert completed.completed_by == "u1"

    async def test_complete_by_non_member(self, services, store, household):
        task = await services.groups.create_task(group_id=household, creator_id="u1", title="Dishes")
        with pytest.raises(ForbiddenError, match="User u2 is not a member"):
            await services.groups.complete_task(group_id=household, task_id=task.id, completer_id="u2")
        assert await store.get(f"groups/{household}/completed") is None

    async def test_complete_missing_task(self, services, household):
        with pytest.raises(NotFoundError, match="Could not find task nope"):
            await services.groups.complete_task(group_id=household, task_id="nope", completer_id="u1")

    async def test_complete_missing_group(self, services):
        with pytest.raises(NotFoundError):
            await services.groups.complete_task(group_id="nope", task_id="t1", completer_id="u1")

    async def test_complete_twice(self, services, household):
        task = await services.groups.create_task(group_id=household, creator_id="u1", title="Dishes")
        await services.groups.complete_task(group_id=household, task_id=task.id, completer_id="u1")
        with pytest.raises(NotFoundError):
            await services.groups.complete_task(group_id=household, task_id=task.id, completer_id="u1")

    async def test_complete_leaves_copy_when_delete_fails(self, settings, token_verifier, push_sender):
        store = FlakyStore()
        services = build_services(store, settings, token_verifier=token_verifier, push_sender=push_sender)
        await services.users.create(make_user_fields("u1"))
        group_id = await services.groups.create(creator_id="u1", name="Home")
        task = await services.groups.create_task(group_id=group_id, creator_id="u1", title="Dishes")
        store.fail_remove_prefixes.append(f"groups/{group_id}/tasks")

        with pytest.raises(StoreError):
            await services.groups.complete_task(group_id=group_id, task_id=task.id, completer_id="u1")
        assert len(await store.get(f"groups/{group_id}/tasks")) == 1
        assert len(await store.get(f"groups/{group_id}/completed")) == 1

    async def test_delete_task(self, services, store, household):
        task = await services.groups.create_task(group_id=household, creator_id="u1", title="Dishes")
        await services.groups.delete_task(group_id=household, task_id=task.id)
        assert await store.get(f"groups/{household}/tasks") is None
        assert await store.get(f"groups/{household}/completed") is None

    async def test_delete_missing_task(self, services, household):
        with pytest.raises(NotFoundError):
            await services.groups.delete_task(group_id=household, task_id="nope")

    async def test_get_tasks_newest_first(self, services, household):
        for title in ("A", "B", "C"):
            await services.groups.create_task(group_id=household, creator_id="u1", title=title)

        tasks = await services.groups.get_tasks(group_id=household, limit=2)
        assert [task.title for task in tasks] == ["C", "B"]

    async def test_get_tasks_default_limit(self, services, household):
        for i in range(12):
            await services.groups.create_task(group_id=household, creator_id="u1", title=f"T{i}")
        tasks = await services.groups.get_tasks(group_id=household)
        assert len(tasks) == 10
        assert tasks[0].title == "T11"

    async def test_get_tasks_empty(self, services, household):
        assert await services.groups.get_tasks(group_id=household) == []

    async def test_get_tasks_missing_group(self, services):
        with pytest.raises(NotFoundError):
            await services.groups.get_tasks(group_id="nope")

    async def test_get_completed_tasks_newest_first(self, services, household):
        created = [
            await services.groups.create_task(group_id=household, creator_id="u1", title=title)
            for title in ("A", "B", "C")
        ]
        for task in created:
            await services.groups.complete_task(group_id=household, task_id=task.id, completer_id="u1")

        completed = await services.groups.get_completed_tasks(group_id=household, limit=5)
        assert [task.title for task in completed] == ["C", "B", "A"]
        assert all(task.completed_by == "u1" for task in completed)


@pytest.mark.unit
class TestConsistencyProperties:
    """Properties the repositories hold, and one they do not."""

    async def test_mirror_holds_after_joins(self, services, store, household):
        await services.groups.add_user_to_group(user_id="u2", group_id=household)
        await services.groups.add_user_to_group(user_id="u3", group_id=household)

        for user_id in await _group_side(store, household):
            assert household in await _user_side(store, user_id)

    async def test_concurrent_kudos_sum(self, services, household):
        await asyncio.gather(
            services.users.give_kudos(user_id="u2", amount=3),
            services.users.give_kudos(user_id="u2", amount=2),
        )
        assert (await services.users.get(user_id="u2")).kudos == 5

    async def test_concurrent_joins_can_duplicate_membership(self, settings, token_verifier, push_sender):
        """Known limitation: two racing joins both pass the membership check."""
        store = SlowPushStore()
        services = build_services(store, settings, token_verifier=token_verifier, push_sender=push_sender)
        for user_id in ("u1", "u2"):
            await services.users.create(make_user_fields(user_id))
        group_id = await services.groups.create(creator_id="u1", name="Home")

        await asyncio.gather(
            services.groups.add_user_to_group(user_id="u2", group_id=group_id),
            services.groups.add_user_to_group(user_id="u2", group_id=group_id),
        )

        assert await _group_side(store, group_id) == ["u1", "u2", "u2"]
        assert await _user_side(store, "u2") == [group_id, group_id]
