from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Gender = Literal["Male", "Female", "Other", "Prefer not to say"]
PreferredLanguage = Literal["Tamil", "English", "Both", "Not specified"]
MaritalStatus = Literal["Single", "Married", "Divorced", "Widowed", "Prefer not to say"]


class UserProfile(BaseModel):
    """Personalization details for one user. Every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(None, alias="displayName", min_length=2, max_length=50)
    age: Optional[int] = Field(None, gt=0)
    gender: Optional[Gender] = None
    preferred_language: Optional[PreferredLanguage] = Field(None, alias="preferredLanguage")
    marital_status: Optional[MaritalStatus] = Field(None, alias="maritalStatus")
    country: Optional[str] = None
    state: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    nationality: Optional[str] = None
    contact: Optional[str] = None

    def is_incomplete(self) -> bool:
        """True when state, marital status and age are all missing."""
        return not self.state and not self.marital_status and self.age is None

    def to_document(self) -> dict:
        """Only the fields that carry a value, keyed the way they are stored."""
        return self.model_dump(by_alias=True, exclude_none=True)


def is_profile_incomplete(profile: Optional[UserProfile]) -> bool:
    """A user with no stored profile at all counts as incomplete."""
    return profile is None or profile.is_incomplete()


class ProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    profile: UserProfile
    is_profile_incomplete: bool = Field(..., alias="isProfileIncomplete")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
