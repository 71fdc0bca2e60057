"""Validation for the registration form."""

from __future__ import annotations

import re

from pydantic import BaseModel, ValidationError, field_validator, model_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RegisterForm(BaseModel):
    name: str
    username: str
    password: str
    confirm_password: str
    email_address: str
    twitter_url: str | None = None

    @field_validator("name")
    @classmethod
    def name_is_ascii(cls, v: str) -> str:
        if not v or not v.isascii():
            raise ValueError("name is not a valid ASCII string")
        return v

    @field_validator("username")
    @classmethod
    def username_is_alphanumeric(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("username must be at least 3 characters")
        if not (v.isascii() and v.isalnum()):
            raise ValueError("username must contain only letters and digits")
        return v

    @field_validator("password")
    @classmethod
    def password_long_enough(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("password must be at least 6 characters")
        return v

    @field_validator("email_address")
    @classmethod
    def email_is_valid(cls, v: str) -> str:
        if not _EMAIL_RE.match(v):
            raise ValueError("email address is not valid")
        return v

    @field_validator("twitter_url")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v.strip() or None if v else None

    @model_validator(mode="after")
    def passwords_match(self) -> RegisterForm:
        if self.password != self.confirm_password:
            raise ValueError("passwords don't match")
        return self


def first_error_message(exc: ValidationError) -> str:
    """The first failure as a short sentence suitable for a query string."""
    errors = exc.errors()
    if not errors:
        return "Unknown error"
    return str(errors[0]["msg"]).removeprefix("Value error, ")
