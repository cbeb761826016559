"""User set models."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from svcadm.constants import USERNAME_PATTERN


class User(BaseModel):
    """Account provisioned in every service that supports users."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    username: str = Field(..., pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=6, max_length=32)
    email: str = Field(default="")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        """Reject leading or trailing whitespace."""
        if v != v.strip():
            raise ValueError("password must not start or end with whitespace")
        return v


class UserSet(BaseModel):
    """Admins and regular users, in declaration order."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    admins: List[User] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.admins) + len(self.users)
