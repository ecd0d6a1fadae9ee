"""User profile model read by the chat components."""
from typing import Optional

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    """Public profile of an application user.

    Attributes:
        userId: Stable user identifier.
        firstName: Given name.
        lastName: Family name.
        email: Contact address (not shown to other users).
        profilePicture: Avatar URL; empty when the user has none.
    """
    userId: str = Field(..., min_length=1)
    firstName: str
    lastName: str
    email: Optional[str] = None
    profilePicture: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.firstName} {self.lastName}".strip()
