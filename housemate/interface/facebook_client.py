"""Facebook Graph API client used to verify that an access token belongs to a user."""

import logging

import httpx

from housemate.core.config import Settings, constants
from housemate.core.errors import UpstreamError


logger = logging.getLogger(__name__)


class FacebookClient:
    """Verifies access tokens against the Graph API ``/me`` endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._graph_url = settings.facebook_graph_url.rstrip("/")
        self._client = client

    async def verify_access_token(self, *, user_id: str, access_token: str | None) -> bool:
        """Return True if the token's subject is ``user_id``.

        A well-formed error response (expired or foreign token) is a plain
        False. Transport failures and unparseable bodies raise UpstreamError.
        """
        if not access_token:
            return False

        url = f"{self._graph_url}/me"
        params = {"access_token": access_token, "fields": "id"}

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error("Facebook token verification failed", extra={"user_id": user_id, "error": str(e)})
            raise UpstreamError(f"Could not reach Facebook to verify user {user_id}: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                "Facebook returned a malformed response",
                extra={"user_id": user_id, "status": response.status_code},
            )
            raise UpstreamError(f"Malformed response from Facebook for user {user_id}") from e

        if not isinstance(body, dict):
            raise UpstreamError(f"Unexpected response from Facebook for user {user_id}")

        if "error" in body:
            logger.info("Facebook rejected access token for user %s", user_id)
            return False

        return str(body.get("id")) == user_id
