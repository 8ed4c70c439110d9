from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from quillpost.errors import Conflict, NotFound, ValidationError
from quillpost.schemas import (
    Blog,
    BlogCreate,
    BlogUpdate,
    Comment,
    CommentCreate,
    CommentUpdate,
    Follower,
    FollowerCreate,
    Like,
    LikeCreate,
    User,
    UserCreate,
    UserUpdate,
)
from quillpost.storage.base import DEFAULT_LIMIT, Storage, mutable_fields
from quillpost.storage.entity_store import EntityStore
from quillpost.storage.queries import filter_by, find_first, newest_first, paginate

logger = logging.getLogger(__name__)

USER_UNIQUE_FIELDS = ("uid", "username", "email")
RENAMEABLE_USER_FIELDS = ("username", "email")


class MemoryStorage(Storage):
    """In-process backend, alive for the lifetime of the process.

    One lock serializes every operation; a uniqueness check and its insert
    share a single critical section. Nothing awaits while the lock is held.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.users: EntityStore[User] = EntityStore(User)
        self.blogs: EntityStore[Blog] = EntityStore(Blog)
        self.likes: EntityStore[Like] = EntityStore(Like)
        self.followers: EntityStore[Follower] = EntityStore(Follower)
        self.comments: EntityStore[Comment] = EntityStore(Comment)

    # Users

    async def get_user(self, id: int) -> User | None:
        with self._lock:
            return self.users.get_by_id(id)

    async def get_user_by_uid(self, uid: str) -> User | None:
        with self._lock:
            return find_first(self.users.all(), uid=uid)

    async def get_user_by_username(self, username: str) -> User | None:
        with self._lock:
            return find_first(self.users.all(), username=username)

    async def get_user_by_email(self, email: str) -> User | None:
        with self._lock:
            return find_first(self.users.all(), email=email)

    async def create_user(self, data: UserCreate) -> User:
        with self._lock:
            rows = self.users.all()
            for field in USER_UNIQUE_FIELDS:
                if find_first(rows, **{field: getattr(data, field)}) is not None:
                    logger.info("Rejected user create: %s already taken", field)
                    raise Conflict(f"{field.capitalize()} already exists")
            return self.users.insert(data)

    async def update_user(self, id: int, fields: Mapping[str, Any]) -> User:
        changes = mutable_fields(fields, UserUpdate)
        with self._lock:
            if self.users.get_by_id(id) is None:
                raise NotFound("User not found")
            rows = self.users.all()
            for field in RENAMEABLE_USER_FIELDS:
                if field not in changes:
                    continue
                other = find_first(rows, **{field: changes[field]})
                if other is not None and other.id != id:
                    logger.info("Rejected user %s update: %s already taken", id, field)
                    raise Conflict(f"{field.capitalize()} already exists")
            return self.users.update(id, changes)

    # Blogs

    async def get_blog(self, id: int) -> Blog | None:
        with self._lock:
            return self.blogs.get_by_id(id)

    async def get_blogs(self, limit: int = DEFAULT_LIMIT, offset: int = 0) -> list[Blog]:
        with self._lock:
            rows = self.blogs.all()
        return paginate(newest_first(rows, "published_at"), limit, offset)

    async def get_blogs_by_user(self, user_id: int) -> list[Blog]:
        with self._lock:
            rows = self.blogs.all()
        return newest_first(filter_by(rows, user_id=user_id), "published_at")

    async def get_blogs_by_category(self, category: str) -> list[Blog]:
        with self._lock:
            rows = self.blogs.all()
        return newest_first(filter_by(rows, category=category), "published_at")

    async def create_blog(self, data: BlogCreate) -> Blog:
        with self._lock:
            return self.blogs.insert(data)

    async def update_blog(self, id: int, fields: Mapping[str, Any]) -> Blog:
        with self._lock:
            return self.blogs.update(id, mutable_fields(fields, BlogUpdate))

    async def delete_blog(self, id: int) -> bool:
        with self._lock:
            if not self.blogs.delete(id):
                return False
            # Likes and comments go with their blog.
            for like in filter_by(self.likes.all(), blog_id=id):
                self.likes.delete(like.id)
            for comment in filter_by(self.comments.all(), blog_id=id):
                self.comments.delete(comment.id)
            return True

    # Likes

    async def get_like(self, user_id: int, blog_id: int) -> Like | None:
        with self._lock:
            return find_first(self.likes.all(), user_id=user_id, blog_id=blog_id)

    async def get_likes_by_blog(self, blog_id: int) -> list[Like]:
        with self._lock:
            return filter_by(self.likes.all(), blog_id=blog_id)

    async def get_likes_by_user(self, user_id: int) -> list[Like]:
        with self._lock:
            return filter_by(self.likes.all(), user_id=user_id)

    async def create_like(self, data: LikeCreate) -> Like:
        with self._lock:
            if find_first(self.likes.all(), user_id=data.user_id, blog_id=data.blog_id) is not None:
                logger.info("Rejected duplicate like user=%s blog=%s", data.user_id, data.blog_id)
                raise Conflict("Like already exists")
            return self.likes.insert(data)

    async def delete_like(self, id: int) -> bool:
        with self._lock:
            return self.likes.delete(id)

    # Followers

    async def get_follower(self, follower_id: int, following_id: int) -> Follower | None:
        with self._lock:
            return find_first(self.followers.all(), follower_id=follower_id, following_id=following_id)

    async def get_followers(self, user_id: int) -> list[Follower]:
        with self._lock:
            return filter_by(self.followers.all(), following_id=user_id)

    async def get_following(self, user_id: int) -> list[Follower]:
        with self._lock:
            return filter_by(self.followers.all(), follower_id=user_id)

    async def create_follower(self, data: FollowerCreate) -> Follower:
        if data.follower_id == data.following_id:
            raise ValidationError(
                "Users cannot follow themselves",
                errors=[{"loc": ["body", "followingId"], "msg": "must differ from followerId"}],
            )
        with self._lock:
            existing = find_first(
                self.followers.all(), follower_id=data.follower_id, following_id=data.following_id
            )
            if existing is not None:
                logger.info("Rejected duplicate follow %s -> %s", data.follower_id, data.following_id)
                raise Conflict("Already following this user")
            return self.followers.insert(data)

    async def delete_follower(self, id: int) -> bool:
        with self._lock:
            return self.followers.delete(id)

    # Comments

    async def get_comment(self, id: int) -> Comment | None:
        with self._lock:
            return self.comments.get_by_id(id)

    async def get_comments_by_blog(self, blog_id: int) -> list[Comment]:
        with self._lock:
            rows = self.comments.all()
        return newest_first(filter_by(rows, blog_id=blog_id), "created_at")

    async def get_comments_by_user(self, user_id: int) -> list[Comment]:
        with self._lock:
            rows = self.comments.all()
        return newest_first(filter_by(rows, user_id=user_id), "created_at")

    async def create_comment(self, data: CommentCreate) -> Comment:
        with self._lock:
            return self.comments.insert(data)

    async def update_comment(self, id: int, fields: Mapping[str, Any]) -> Comment:
        with self._lock:
            return self.comments.update(id, mutable_fields(fields, CommentUpdate))

    async def delete_comment(self, id: int) -> bool:
        with self._lock:
            return self.comments.delete(id)
