"""
Members Module

A member is a person inside a group. Members are stored inline on the group
document, keyed by member id:

    groups/{group_id}.members.{member_id}
        - id: string
        - name: string
        - joinedAt: int (epoch milliseconds)

Identity is by id; names may collide.
"""

from typing import Optional

from google.cloud.firestore_v1.field_path import FieldPath


DEFAULT_MEMBER_NAME = "Roomie"


class Member:
    """
    Represents a member of a group.

    Attributes:
        id (str): Unique identifier within the group.
        name (str): Display name.
        joined_at (int | None): When the member joined (epoch milliseconds).
    """

    def __init__(self, id: str, name: str, joined_at: Optional[int] = None):
        self.id = id
        self.name = name
        self.joined_at = joined_at

    def to_dict(self) -> dict:
        """Convert member to dictionary for Firestore storage."""
        return {
            "id": self.id,
            "name": self.name,
            "joinedAt": self.joined_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        """Create a Member instance from a dictionary."""
        return cls(
            id=data.get("id"),
            name=data.get("name") or DEFAULT_MEMBER_NAME,
            joined_at=data.get("joinedAt")
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Member):
            return NotImplemented
        return self.id == other.id and self.name == other.name

    def __repr__(self) -> str:
        return f"Member(id='{self.id}', name='{self.name}')"


def member_name_map(members: list[Member]) -> dict[str, str]:
    """Map member ids to display names."""
    return {m.id: m.name for m in members}


def member_field(map_name: str, member_id: str) -> str:
    """
    Field path of one entry in a member map ("memberIds" or "members").

    The id is quoted when needed, so an id such as "j.doe" addresses a
    single key instead of a nested field.
    """
    return FieldPath(map_name, member_id).to_api_repr()
