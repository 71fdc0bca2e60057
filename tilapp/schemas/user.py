"""User schemas: public projections, creation payload, bearer token."""

from __future__ import annotations

from pydantic import BaseModel, Field

from tilapp.db.models.user import UserType


class UserPublic(BaseModel):
    """What anyone may see about a user. No password, no email."""

    id: str
    name: str
    username: str

    model_config = {"from_attributes": True}


class UserPublicV2(UserPublic):
    twitter_url: str | None = None


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=256)
    email: str = Field(..., min_length=3, max_length=255)
    twitter_url: str | None = Field(default=None, max_length=255)
    user_type: UserType = UserType.STANDARD


class TokenOut(BaseModel):
    id: str
    value: str
    user_id: str

    model_config = {"from_attributes": True}
