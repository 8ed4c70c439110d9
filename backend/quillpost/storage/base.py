from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from quillpost.schemas import (
    Blog,
    BlogCreate,
    Comment,
    CommentCreate,
    Follower,
    FollowerCreate,
    Like,
    LikeCreate,
    PartialUpdate,
    User,
    UserCreate,
)

DEFAULT_LIMIT = 10


def mutable_fields(fields: Mapping[str, Any], update_model: type[PartialUpdate]) -> dict[str, Any]:
    """Drop keys the update model does not allow (ids, owners, uid)."""
    allowed = update_model.model_fields
    return {k: v for k, v in fields.items() if k in allowed}


class Storage(ABC):
    """Everything the API needs from a backend.

    Lookups return None when nothing matches. ``update_*`` raises NotFound for
    an unknown id and applies only the given fields. ``create_user``,
    ``create_like`` and ``create_follower`` raise Conflict instead of
    inserting a duplicate. ``delete_*`` reports whether a row was removed.
    """

    async def start(self) -> None:
        """Prepare the backend before the first request."""

    async def close(self) -> None:
        """Release backend resources at shutdown."""

    # Users

    @abstractmethod
    async def get_user(self, id: int) -> User | None: ...

    @abstractmethod
    async def get_user_by_uid(self, uid: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def create_user(self, data: UserCreate) -> User: ...

    @abstractmethod
    async def update_user(self, id: int, fields: Mapping[str, Any]) -> User: ...

    # Blogs

    @abstractmethod
    async def get_blog(self, id: int) -> Blog | None: ...

    @abstractmethod
    async def get_blogs(self, limit: int = DEFAULT_LIMIT, offset: int = 0) -> list[Blog]: ...

    @abstractmethod
    async def get_blogs_by_user(self, user_id: int) -> list[Blog]: ...

    @abstractmethod
    async def get_blogs_by_category(self, category: str) -> list[Blog]: ...

    @abstractmethod
    async def create_blog(self, data: BlogCreate) -> Blog: ...

    @abstractmethod
    async def update_blog(self, id: int, fields: Mapping[str, Any]) -> Blog: ...

    @abstractmethod
    async def delete_blog(self, id: int) -> bool: ...

    # Likes

    @abstractmethod
    async def get_like(self, user_id: int, blog_id: int) -> Like | None: ...

    @abstractmethod
    async def get_likes_by_blog(self, blog_id: int) -> list[Like]: ...

    @abstractmethod
    async def get_likes_by_user(self, user_id: int) -> list[Like]: ...

    @abstractmethod
    async def create_like(self, data: LikeCreate) -> Like: ...

    @abstractmethod
    async def delete_like(self, id: int) -> bool: ...

    # Followers

    @abstractmethod
    async def get_follower(self, follower_id: int, following_id: int) -> Follower | None: ...

    @abstractmethod
    async def get_followers(self, user_id: int) -> list[Follower]: ...

    @abstractmethod
    async def get_following(self, user_id: int) -> list[Follower]: ...

    @abstractmethod
    async def create_follower(self, data: FollowerCreate) -> Follower: ...

    @abstractmethod
    async def delete_follower(self, id: int) -> bool: ...

    # Comments

    @abstractmethod
    async def get_comment(self, id: int) -> Comment | None: ...

    @abstractmethod
    async def get_comments_by_blog(self, blog_id: int) -> list[Comment]: ...

    @abstractmethod
    async def get_comments_by_user(self, user_id: int) -> list[Comment]: ...

    @abstractmethod
    async def create_comment(self, data: CommentCreate) -> Comment: ...

    @abstractmethod
    async def update_comment(self, id: int, fields: Mapping[str, Any]) -> Comment: ...

    @abstractmethod
    async def delete_comment(self, id: int) -> bool: ...
