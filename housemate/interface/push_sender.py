"""Push notification gateway client with retry logic."""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from housemate.core.config import Settings, constants


logger = logging.getLogger(__name__)


# HTTP status code constants for error handling
HTTP_CLIENT_ERROR_START = 400
HTTP_CLIENT_ERROR_END = 500


class PushMessage(BaseModel):
    """A single push notification addressed to one device."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(..., alias="deviceId")
    category: str = Field(default=constants.PUSH_CATEGORY_KUDOS)
    alert: str = Field(..., alias="alertText")
    badge: int = Field(default=constants.PUSH_BADGE, alias="badgeCount")
    sound: str = Field(default=constants.PUSH_SOUND)
    custom: dict[str, Any] = Field(default_factory=dict, alias="customFields")


class SendPushResult(BaseModel):
    """Result of sending a push notification."""

    success: bool = Field(..., description="Whether the gateway accepted the message")
    error: str | None = Field(None, description="Error message if failed")


class PushSender:
    """Sends push notifications through the HTTP push gateway."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._url = f"{settings.push_gateway_url.rstrip('/')}/api/send"
        self._api_key = settings.push_gateway_api_key
        self._client = client

    async def _post(self, payload: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self._url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
            return await client.post(self._url, json=payload, headers=headers)

    async def send(
        self,
        message: PushMessage,
        *,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> SendPushResult:
        """Send one message, retrying gateway-side (5xx) and transport failures.

        Never raises: delivery problems come back as an unsuccessful result.
        """
        payload = message.model_dump(by_alias=True)
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-Api-Key"] = self._api_key

        for attempt in range(max_retries):
            try:
                response = await self._post(payload, headers)

                if response.is_success:
                    return SendPushResult(success=True)

                if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
                    return SendPushResult(success=False, error=f"Client error: {response.text}")

                raise httpx.HTTPStatusError(
                    f"Server error: {response.status_code}", request=response.request, response=response
                )
            except httpx.HTTPError as e:
                if attempt < max_retries - 1:
                    logger.warning("Push send failed (attempt %d/%d): %s", attempt + 1, max_retries, e)
                    await asyncio.sleep(retry_delay * (2**attempt))
                else:
                    return SendPushResult(success=False, error=f"Failed after retries: {e!s}")

        return SendPushResult(success=False, error="Max retries exceeded")
