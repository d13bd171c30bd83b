"""Configuration management for housemate."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store Configuration
    store_backend: Literal["firebase", "memory"] = Field(
        default="firebase", description="Document store backend (firebase or memory)"
    )
    firebase_url: str = Field(
        default="https://housemate.firebaseio.com", description="Firebase Realtime Database URL"
    )
    firebase_auth_token: str | None = Field(
        default=None, description="Firebase database secret or ID token passed as ?auth="
    )
    transaction_max_retries: int = Field(
        default=25, description="Maximum compare-and-set attempts for a single-path transaction"
    )

    # Facebook Configuration
    facebook_graph_url: str = Field(default="https://graph.facebook.com", description="Facebook Graph API base URL")

    # Push Gateway Configuration
    push_gateway_url: str = Field(default="http://push-gateway:8080", description="Push notification gateway URL")
    push_gateway_api_key: str | None = Field(default=None, description="Push gateway API key (optional)")

    # Session Configuration
    secret_key: str | None = Field(default=None, description="Secret used to sign session cookies")
    is_production: bool = Field(default=False, description="Enable production-only behaviour (secure cookies)")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Store Paths
    USERS_PATH: str = "users"
    GROUPS_PATH: str = "groups"
    INVITES_PATH: str = "invites"

    # Task Listing
    DEFAULT_TASK_LIMIT: int = 10

    # Invites
    INVITE_CODE_LENGTH: int = 5

    # Push Notifications
    PUSH_CATEGORY_KUDOS: str = "KudosCategory"
    PUSH_SOUND: str = "Hope.aif"
    PUSH_BADGE: int = 1

    # Sessions
    SESSION_COOKIE_NAME: str = "housemate_session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 30  # 30 days


def get_settings() -> Settings:
    """Load application settings from the environment and .env file."""
    return Settings()


constants = Constants()
