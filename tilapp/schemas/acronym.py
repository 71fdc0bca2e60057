"""Acronym and category schemas, including the user/acronym aggregates."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from tilapp.schemas.user import UserPublic


class AcronymIn(BaseModel):
    short: str = Field(..., min_length=1, max_length=255)
    long: str = Field(..., min_length=1, max_length=1024)


class AcronymOut(BaseModel):
    id: int
    short: str
    long: str
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class AcronymWithUser(BaseModel):
    id: int
    short: str
    long: str
    user: UserPublic


class UserWithAcronyms(UserPublic):
    acronyms: list[AcronymOut]


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class CategoryOut(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}
