"""Entity store contract over a hierarchical, path-addressed document tree.

Every operation touches exactly one path. There is no multi-path atomicity:
a write is visible to readers of its path as soon as it returns, and nothing
is staged or rolled back across paths. ``transaction`` is the only
read-modify-write primitive and it covers a single path.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


KEY_ORDER = "$key"

TransactionFn = Callable[[Any], Any]


def join_path(*segments: str) -> str:
    """Join path segments with '/', ignoring empty segments and stray slashes."""
    return "/".join(segment.strip("/") for segment in segments if segment and segment.strip("/"))


def order_value(key: str, value: Any, order_by: str) -> Any:
    """Return the value a node is ordered by for a child-field or key ordering."""
    if order_by == KEY_ORDER:
        return key
    if isinstance(value, dict):
        return value.get(order_by)
    return None


def sort_key(item: tuple[str, Any], order_by: str) -> tuple[int, Any, str]:
    """Sort nodes the way the Realtime Database orders query results.

    Nodes missing the child come first, then booleans, numbers and strings;
    ties are broken by key.
    """
    key, value = item
    ordered = order_value(key, value, order_by)
    if ordered is None:
        return (0, "", key)
    if isinstance(ordered, bool):
        return (1, int(ordered), key)
    if isinstance(ordered, int | float):
        return (2, ordered, key)
    if isinstance(ordered, str):
        return (3, ordered, key)
    return (4, "", key)


class Store(ABC):
    """Async single-path operations over the document tree."""

    @abstractmethod
    async def get(self, path: str) -> Any | None:
        """Return the node at ``path`` or None if it does not exist."""

    async def exists(self, path: str) -> bool:
        """Return True if a node exists at ``path``."""
        return await self.get(path) is not None

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the node at ``path`` with ``value``."""

    @abstractmethod
    async def update(self, path: str, partial: dict[str, Any]) -> None:
        """Merge the children in ``partial`` into the node at ``path``."""

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the node at ``path``; deleting a missing node is not an error."""

    @abstractmethod
    def push_child(self, path: str) -> str:
        """Generate a new chronologically ordered child key under ``path`` without writing."""

    async def push(self, path: str, value: Any) -> str:
        """Write ``value`` under a freshly generated child key and return the key."""
        key = self.push_child(path)
        await self.set(join_path(path, key), value)
        return key

    @abstractmethod
    async def transaction(self, path: str, fn: TransactionFn) -> Any:
        """Atomically replace the node at ``path`` with ``fn(current)`` and return the committed value.

        ``fn`` receives None when the node does not exist and may be called
        more than once under contention, so it must be free of side effects.
        """

    @abstractmethod
    async def query_ordered_range(
        self,
        path: str,
        order_by: str,
        *,
        limit: int,
        from_end: bool = False,
        start_at: Any = None,
        end_at: Any = None,
    ) -> list[tuple[str, Any]]:
        """Return up to ``limit`` children of ``path`` ordered ascending by ``order_by``.

        ``order_by`` is a child field name or ``KEY_ORDER``. ``start_at`` and
        ``end_at`` bound the ordered value inclusively. With ``from_end`` the
        last ``limit`` matches are returned, still in ascending order.
        """

    async def close(self) -> None:
        """Release any held resources."""
