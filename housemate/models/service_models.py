"""Pydantic models for service layer return types."""

from pydantic import BaseModel


class NotificationResult(BaseModel):
    """Result of notifying one group member."""

    user_id: str
    device_id: str | None = None
    success: bool
    skipped: bool = False
    error: str | None = None
