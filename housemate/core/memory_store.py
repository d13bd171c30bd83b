"""In-process document tree implementing the store contract.

Used for tests and local development. Values are deep-copied in and out so
callers never share state with the tree, and empty mappings are pruned the
way the Realtime Database drops nodes with no children.
"""

import asyncio
import copy
import logging
from typing import Any

from housemate.core.errors import StoreError
from housemate.core.push_ids import PushIdGenerator
from housemate.core.store import Store, TransactionFn, order_value, sort_key


logger = logging.getLogger(__name__)


def _split(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def _normalize(value: Any) -> Any:
    """Drop None children and empty mappings; None means 'no node'."""
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            normalized = _normalize(child)
            if normalized is not None:
                cleaned[str(key)] = normalized
        return cleaned or None
    return copy.deepcopy(value)


class MemoryStore(Store):
    """Nested-dict store guarded by a single asyncio lock."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._root: dict[str, Any] = _normalize(initial or {}) or {}
        self._lock = asyncio.Lock()
        self._ids = PushIdGenerator()

    def _read(self, path: str) -> Any | None:
        node: Any = self._root
        for segment in _split(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _write(self, path: str, value: Any) -> None:
        segments = _split(path)
        if not segments:
            raise StoreError("Refusing to overwrite the store root", path=path)

        normalized = _normalize(value)
        parents: list[tuple[dict[str, Any], str]] = []
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if normalized is None:
                    return
                child = {}
                node[segment] = child
            parents.append((node, segment))
            node = child

        if normalized is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = normalized

        # Prune ancestors left without children
        for parent, segment in reversed(parents):
            if parent[segment]:
                break
            del parent[segment]

    async def get(self, path: str) -> Any | None:
        async with self._lock:
            return copy.deepcopy(self._read(path))

    async def set(self, path: str, value: Any) -> None:
        async with self._lock:
            self._write(path, value)

    async def update(self, path: str, partial: dict[str, Any]) -> None:
        if not isinstance(partial, dict):
            raise StoreError(f"Update payload must be a mapping, got {type(partial).__name__}", path=path)
        async with self._lock:
            for key, value in partial.items():
                self._write(f"{path}/{key}", value)

    async def remove(self, path: str) -> None:
        async with self._lock:
            self._write(path, None)

    def push_child(self, path: str) -> str:
        return self._ids.generate()

    async def transaction(self, path: str, fn: TransactionFn) -> Any:
        async with self._lock:
            current = copy.deepcopy(self._read(path))
            try:
                new_value = fn(current)
            except Exception as e:
                raise StoreError(f"Transaction update failed at {path}: {e}", path=path) from e
            self._write(path, new_value)
            return copy.deepcopy(self._read(path))

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
        async with self._lock:
            node = self._read(path)
            if not isinstance(node, dict) or limit <= 0:
                return []

            items = sorted(node.items(), key=lambda item: sort_key(item, order_by))
            if start_at is not None or end_at is not None:
                items = [
                    item for item in items if _in_range(order_value(*item, order_by), start_at=start_at, end_at=end_at)
                ]

            selected = items[-limit:] if from_end else items[:limit]
            return copy.deepcopy(selected)


def _comparable(value: Any, bound: Any) -> bool:
    if isinstance(value, bool) or isinstance(bound, bool):
        return type(value) is type(bound)
    if isinstance(value, int | float):
        return isinstance(bound, int | float)
    return type(value) is type(bound)


def _in_range(value: Any, *, start_at: Any, end_at: Any) -> bool:
    """Inclusive range check; values of a different kind than the bounds never match."""
    if value is None:
        return False
    if start_at is not None and (not _comparable(value, start_at) or value < start_at):
        return False
    return end_at is None or (_comparable(value, end_at) and value <= end_at)
