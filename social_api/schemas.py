"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

JSON keys are camelCase on the wire (``createdAt``, ``friendsCount``);
requests also accept the snake_case field names.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

PASSWORD_SPECIALS = "!@#$%^&*"


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


# ──────────────────────────── Auth ────────────────────────────────────────

class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Username must be at least 3 characters long")
        return value

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        has_letter = any(ch.isalpha() for ch in value)
        has_digit = any(ch.isdigit() for ch in value)
        has_special = any(ch in PASSWORD_SPECIALS for ch in value)
        if not (has_letter and has_digit and has_special):
            raise ValueError(
                "Password must contain at least one letter, one number, "
                "and one special character"
            )
        return value


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


# ──────────────────────────── Users ───────────────────────────────────────

class UserSummary(CamelModel):
    """Public projection of a user: never carries the password or id lists."""
    id: str
    username: str
    email: str
    created_at: datetime
    friends_count: int = 0


class AuthResponse(CamelModel):
    token: str
    user: UserSummary


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=100)
    email: Optional[EmailStr] = None


class TargetUser(CamelModel):
    """Body of every friend-request endpoint."""
    user_id: str = Field(..., min_length=1, max_length=36)


class MessageResponse(BaseModel):
    detail: str


# ──────────────────────────── Posts ───────────────────────────────────────

class AuthorSummary(CamelModel):
    id: str
    username: str


class PostContent(CamelModel):
    content: str = Field(..., min_length=1)


class PostResponse(CamelModel):
    id: str
    content: str
    author: AuthorSummary
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime
    updated_at: datetime


class PostLikers(CamelModel):
    post_id: str
    likes: list[AuthorSummary]


class LikeToggleResponse(CamelModel):
    detail: str
    liked: bool
    likes_count: int


# ──────────────────────────── Comments ────────────────────────────────────

class CommentContent(CamelModel):
    content: str = Field(..., min_length=1)


class CommentResponse(CamelModel):
    id: str
    post_id: str
    author_id: str
    content: str
    created_at: datetime
    updated_at: datetime
