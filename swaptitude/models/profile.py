"""User profile snapshot as read from the profile document"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileSnapshot(BaseModel):
    """
    Point-in-time copy of a user's profile document.

    Documents are stored with camelCase keys (accountId, isVerified,
    createdAt, ...); Python code may use either spelling.
    """

    model_config = ConfigDict(
        frozen=True,  # Immutable for thread safety
        alias_generator=to_camel,
        populate_by_name=True,
    )

    account_id: str = Field(min_length=1)
    is_verified: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    # Display fields, not read by the session controller
    email: Optional[str] = None
    full_name: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def rating_display(self) -> str:
        if self.review_count == 0:
            return "Not rated yet"
        return f"{self.rating:.1f}"
