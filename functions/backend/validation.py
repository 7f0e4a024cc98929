"""
Form rules checked before any remote call is made.
"""

from __future__ import annotations

import re
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError, field_validator, model_validator
from pydantic_core import PydanticCustomError

from backend.errors import validation_error
from shared.constants import (
    MAX_COMMENT_LENGTH,
    MAX_HOURS_REQUIRED,
    MAX_MESSAGE_LENGTH,
    MAX_RATING,
    MAX_TITLE_LENGTH,
    MIN_DESCRIPTION_LENGTH,
    MIN_HOURS_REQUIRED,
    MIN_PASSWORD_LENGTH,
    MIN_RATING,
)
from shared.types import ServiceCategory

F = TypeVar("F", bound=BaseModel)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class SignupForm(BaseModel):
    email: str
    password: str
    confirm_password: str
    display_name: str

    @model_validator(mode="after")
    def _check_passwords(self) -> "SignupForm":
        # Same order as the sign-up page: mismatch first, then strength.
        if self.password != self.confirm_password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match")
        if len(self.password) < MIN_PASSWORD_LENGTH:
            raise PydanticCustomError(
                "password_too_short",
                "Password must be at least {min_length} characters",
                {"min_length": MIN_PASSWORD_LENGTH},
            )
        if not _EMAIL_PATTERN.match(self.email.strip()):
            raise PydanticCustomError("invalid_email", "Please enter a valid email address.")
        if not self.display_name.strip():
            raise PydanticCustomError("display_name_required", "Display name is required")
        return self


class SigninForm(BaseModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("required", "Email and password are required")
        return value


class ServiceForm(BaseModel):
    title: str
    description: str
    category: ServiceCategory
    hours_required: float
    location: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("required", "Title is required")
        if len(value) > MAX_TITLE_LENGTH:
            raise PydanticCustomError(
                "title_too_long",
                "Title should be at most {max_length} characters",
                {"max_length": MAX_TITLE_LENGTH},
            )
        return value

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("required", "Description is required")
        if len(value) < MIN_DESCRIPTION_LENGTH:
            raise PydanticCustomError(
                "description_too_short",
                "Description should be at least {min_length} characters",
                {"min_length": MIN_DESCRIPTION_LENGTH},
            )
        return value

    @field_validator("hours_required")
    @classmethod
    def _check_hours(cls, value: float) -> float:
        if value < MIN_HOURS_REQUIRED:
            raise PydanticCustomError("hours_min", "Minimum 0.5 hours")
        if value > MAX_HOURS_REQUIRED:
            raise PydanticCustomError("hours_max", "Maximum 24 hours")
        return value


class RequestForm(BaseModel):
    message: Optional[str] = None

    @field_validator("message")
    @classmethod
    def _check_message(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > MAX_MESSAGE_LENGTH:
            raise PydanticCustomError("message_too_long", "Message is too long")
        return value


class ReviewForm(BaseModel):
    rating: int
    comment: str

    @field_validator("rating")
    @classmethod
    def _check_rating(cls, value: int) -> int:
        if not MIN_RATING <= value <= MAX_RATING:
            raise PydanticCustomError(
                "rating_range",
                "Rating must be between {low} and {high}",
                {"low": MIN_RATING, "high": MAX_RATING},
            )
        return value

    @field_validator("comment")
    @classmethod
    def _check_comment(cls, value: str) -> str:
        if len(value) > MAX_COMMENT_LENGTH:
            raise PydanticCustomError("comment_too_long", "Comment is too long")
        return value


def validate_form(form_class: Type[F], **values) -> F:
    """
    Builds `form_class` from `values`.

    Raises:
        TimeBankError: kind VALIDATION carrying the first failing rule's
            message and the offending field, if any.
    """
    try:
        return form_class(**values)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise validation_error(first["msg"], field=location or None) from None
