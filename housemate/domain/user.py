"""User domain models."""

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """User data transfer object as stored at users/{id}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Facebook user ID")
    access_token: str | None = Field(default=None, alias="accessToken", description="Facebook access token")
    device_id: str | None = Field(default=None, alias="deviceId", description="Push notification device token")
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    full_name: str = Field(default="", alias="fullName")
    photo: str | None = Field(default=None, description="Profile photo URL")
    kudos: int = Field(default=0, description="Kudos received from housemates")
    group_entries: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        alias="groups",
        description="Membership entries keyed by entry key, each {id: groupId}",
    )

    @property
    def group_ids(self) -> list[str]:
        """Group ids in entry-key (insertion) order."""
        return [entry["id"] for _, entry in sorted(self.group_entries.items()) if "id" in entry]

    def to_public(self) -> dict:
        """Return the user as sent to clients, without the access token or raw entries."""
        return self.model_dump(by_alias=True, exclude={"access_token", "group_entries"})


class UserCreate(BaseModel):
    """Fields accepted when registering a user.

    Everything is optional at the model level so that missing fields are
    reported together as an InvalidInputError by the repository.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    access_token: str | None = Field(default=None, alias="accessToken")
    device_id: str | None = Field(default=None, alias="deviceId")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    photo: str | None = None


class UserUpdate(BaseModel):
    """Partial update for a user record; unset fields are left untouched."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = Field(default=None, alias="accessToken")
    device_id: str | None = Field(default=None, alias="deviceId")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    photo: str | None = None
