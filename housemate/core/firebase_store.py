"""Firebase Realtime Database client implementing the store contract over REST."""

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from housemate.core.config import Settings, constants
from housemate.core.errors import StoreError
from housemate.core.memory_store import MemoryStore
from housemate.core.push_ids import PushIdGenerator
from housemate.core.store import Store, TransactionFn, sort_key


logger = logging.getLogger(__name__)

HTTP_PRECONDITION_FAILED = 412


class FirebaseStore(Store):
    """Realtime Database store speaking the REST protocol via httpx.

    Query results arrive as an unordered JSON object, so ordering is
    re-applied client-side. Transactions use the ETag compare-and-set
    protocol and are retried on HTTP 412 up to ``transaction_max_retries``.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = settings.firebase_url.rstrip("/")
        self._auth_token = settings.firebase_auth_token
        self._max_retries = settings.transaction_max_retries
        self._client = client or httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS)
        self._ids = PushIdGenerator()

    def _url(self, path: str) -> str:
        # Segments are opaque ids; percent-encode them so none can end the path early
        encoded = "/".join(quote(segment, safe="") for segment in path.strip("/").split("/"))
        return f"{self._base_url}/{encoded}.json"

    def _params(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        params = {}
        if self._auth_token:
            params["auth"] = self._auth_token
        if extra:
            params.update(extra)
        return params

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        allowed_statuses: tuple[int, ...] = (),
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {"params": self._params(params), "headers": headers or {}}
        if method in ("PUT", "PATCH"):
            kwargs["content"] = json.dumps(body)
            kwargs["headers"]["Content-Type"] = "application/json"

        try:
            response = await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as e:
            logger.error("Store request failed", extra={"method": method, "path": path, "error": str(e)})
            raise StoreError(f"{method} {path} failed: {e}", path=path) from e

        if response.is_success or response.status_code in allowed_statuses:
            return response

        logger.error(
            "Store request rejected",
            extra={"method": method, "path": path, "status": response.status_code, "body": response.text[:200]},
        )
        raise StoreError(f"{method} {path} returned {response.status_code}: {response.text[:200]}", path=path)

    @staticmethod
    def _json(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Malformed response for {path}: {e}", path=path) from e

    async def get(self, path: str) -> Any | None:
        response = await self._request("GET", path)
        return self._json(response, path)

    async def set(self, path: str, value: Any) -> None:
        await self._request("PUT", path, body=value, params={"print": "silent"})

    async def update(self, path: str, partial: dict[str, Any]) -> None:
        if not isinstance(partial, dict):
            raise StoreError(f"Update payload must be a mapping, got {type(partial).__name__}", path=path)
        await self._request("PATCH", path, body=partial, params={"print": "silent"})

    async def remove(self, path: str) -> None:
        await self._request("DELETE", path, params={"print": "silent"})

    def push_child(self, path: str) -> str:
        return self._ids.generate()

    async def transaction(self, path: str, fn: TransactionFn) -> Any:
        response = await self._request("GET", path, headers={"X-Firebase-ETag": "true"})
        etag = response.headers.get("ETag")
        current = self._json(response, path)

        for attempt in range(self._max_retries):
            try:
                new_value = fn(current)
            except Exception as e:
                raise StoreError(f"Transaction update failed at {path}: {e}", path=path) from e

            response = await self._request(
                "PUT",
                path,
                body=new_value,
                headers={"if-match": etag or "null_etag"},
                allowed_statuses=(HTTP_PRECONDITION_FAILED,),
            )
            if response.status_code != HTTP_PRECONDITION_FAILED:
                return self._json(response, path)

            # Someone else wrote first; the 412 carries the current value and ETag
            etag = response.headers.get("ETag")
            current = self._json(response, path)
            logger.debug("Transaction contention at %s (attempt %d/%d)", path, attempt + 1, self._max_retries)

        raise StoreError(f"Transaction at {path} did not commit after {self._max_retries} attempts", path=path)

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
        if limit <= 0:
            return []

        params = {"orderBy": json.dumps(order_by)}
        if start_at is not None:
            params["startAt"] = json.dumps(start_at)
        if end_at is not None:
            params["endAt"] = json.dumps(end_at)
        params["limitToLast" if from_end else "limitToFirst"] = str(limit)

        response = await self._request("GET", path, params=params)
        body = self._json(response, path)
        if not isinstance(body, dict):
            return []
        return sorted(body.items(), key=lambda item: sort_key(item, order_by))

    async def close(self) -> None:
        await self._client.aclose()


def build_store(settings: Settings) -> Store:
    """Build the store backend selected by configuration."""
    if settings.store_backend == "memory":
        logger.warning("Using in-memory store; data is lost on restart")
        return MemoryStore()

    logger.info("Using Firebase store at %s", settings.firebase_url)
    return FirebaseStore(settings)
