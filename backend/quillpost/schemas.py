from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # Everything is kept in UTC; naive input is taken to be UTC already.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    """Base for every wire model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PartialUpdate(CamelModel):
    """A patch payload. Only fields the client actually sent are applied."""

    non_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_null_required(self):
        for name in self.non_nullable:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# Users


class UserCreate(CamelModel):
    uid: str = Field(min_length=1, max_length=128)
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    display_name: str = Field(min_length=1, max_length=100)
    bio: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")
    location: str | None = None
    website: str | None = None


class User(UserCreate):
    id: int


class UserUpdate(PartialUpdate):
    non_nullable = ("username", "email", "display_name")

    username: str | None = Field(default=None, min_length=1, max_length=50)
    email: EmailStr | None = None
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    bio: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")
    location: str | None = None
    website: str | None = None


# Blogs


class BlogCreate(CamelModel):
    user_id: int
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    cover_image: str | None = None
    category: str = Field(min_length=1, max_length=100)
    tags: list[str] | None = None
    published_at: datetime = Field(default_factory=_now_utc)

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value):
        return _as_utc(value)


class Blog(BlogCreate):
    id: int


class BlogUpdate(PartialUpdate):
    non_nullable = ("title", "content", "category", "published_at")

    title: str | None = Field(default=None, min_length=1, max_length=300)
    content: str | None = Field(default=None, min_length=1)
    cover_image: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=100)
    tags: list[str] | None = None
    published_at: datetime | None = None

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value):
        return _as_utc(value)


# Likes


class LikeCreate(CamelModel):
    user_id: int
    blog_id: int


class Like(LikeCreate):
    id: int


# Followers


class FollowerCreate(CamelModel):
    follower_id: int
    following_id: int


class Follower(FollowerCreate):
    id: int


# Comments


class CommentCreate(CamelModel):
    user_id: int
    blog_id: int
    content: str = Field(min_length=1, max_length=5000)
    created_at: datetime = Field(default_factory=_now_utc)
    parent_id: int | None = None

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value):
        return _as_utc(value)


class Comment(CommentCreate):
    id: int


class CommentUpdate(PartialUpdate):
    non_nullable = ("content",)

    content: str | None = Field(default=None, min_length=1, max_length=5000)
    parent_id: int | None = None


class DeleteResult(BaseModel):
    success: bool = True
