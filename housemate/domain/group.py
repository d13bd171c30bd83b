"""Group and invite domain models."""

from pydantic import BaseModel, ConfigDict, Field


class Group(BaseModel):
    """Group header and members stored at groups/{id}.

    The tasks and completed collections under the same node are read through
    ordered queries, not loaded with the group.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Group ID")
    creator: str = Field(..., description="User ID of the group creator")
    name: str = Field(..., description="Group name")
    member_entries: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        alias="members",
        description="Membership entries keyed by entry key, each {id: userId}",
    )

    @property
    def member_ids(self) -> list[str]:
        """Member ids in entry-key (insertion) order."""
        return [entry["id"] for _, entry in sorted(self.member_entries.items()) if "id" in entry]

    def to_public(self) -> dict:
        """Return the group header as sent to clients."""
        return {"id": self.id, "creator": self.creator, "name": self.name}


class Invite(BaseModel):
    """Invite stored at invites/{code}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: str = Field(..., description="Deterministic invite code")
    group_id: str = Field(..., alias="groupId")
    inviter: str = Field(..., description="User ID of the inviting member")

    def to_record(self) -> dict:
        """Return the stored representation."""
        return self.model_dump(by_alias=True)
