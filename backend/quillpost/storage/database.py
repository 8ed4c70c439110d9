from __future__ import annotations

import logging
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Select, delete, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from quillpost import models
from quillpost.db import build_engine, build_sessionmaker, create_tables
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

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)

RENAMEABLE_USER_FIELDS = ("username", "email")


class DatabaseStorage(Storage):
    """SQLAlchemy backend.

    Secondary and foreign keys are indexed columns. Duplicates that get past
    the pre-insert lookup are stopped by the table constraints and surface as
    Conflict.
    """

    def __init__(self, database_url: str, *, create_schema: bool = True, engine: AsyncEngine | None = None) -> None:
        self.engine = engine or build_engine(database_url)
        self._sessions = build_sessionmaker(self.engine)
        self._create_schema = create_schema

    async def start(self) -> None:
        if self._create_schema:
            await create_tables(self.engine)
            logger.info("Database schema ready")

    async def close(self) -> None:
        await self.engine.dispose()

    # Generic helpers

    async def _get(self, row_type: type[models.Base], schema: type[S], id: int) -> S | None:
        async with self._sessions() as session:
            row = await session.get(row_type, id)
            return schema.model_validate(row) if row is not None else None

    async def _first(self, stmt: Select, schema: type[S]) -> S | None:
        async with self._sessions() as session:
            row = (await session.execute(stmt.limit(1))).scalars().first()
            return schema.model_validate(row) if row is not None else None

    async def _list(self, stmt: Select, schema: type[S]) -> list[S]:
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [schema.model_validate(r) for r in rows]

    async def _insert(self, row_type: type[models.Base], schema: type[S], data: BaseModel, conflict: str) -> S:
        async with self._sessions() as session:
            row = row_type(**data.model_dump())
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.info("Insert into %s rejected by constraint", row_type.__tablename__)
                raise Conflict(conflict) from e
            logger.debug("Inserted %s id=%s", row_type.__tablename__, row.id)
            return schema.model_validate(row)

    async def _update(
        self, row_type: type[models.Base], schema: type[S], id: int, fields: Mapping[str, Any], label: str
    ) -> S:
        async with self._sessions() as session:
            row = await session.get(row_type, id)
            if row is None:
                raise NotFound(f"{label} not found")
            try:
                merged = schema.model_validate({**schema.model_validate(row).model_dump(), **fields})
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e) from e
            for key in fields:
                setattr(row, key, getattr(merged, key))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise Conflict(f"{label} conflicts with an existing record") from e
            return schema.model_validate(row)

    async def _delete(self, row_type: type[models.Base], id: int) -> bool:
        async with self._sessions() as session:
            row = await session.get(row_type, id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    # Users

    async def get_user(self, id: int) -> User | None:
        return await self._get(models.User, User, id)

    async def get_user_by_uid(self, uid: str) -> User | None:
        return await self._first(select(models.User).where(models.User.uid == uid), User)

    async def get_user_by_username(self, username: str) -> User | None:
        return await self._first(select(models.User).where(models.User.username == username), User)

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._first(select(models.User).where(models.User.email == email), User)

    async def create_user(self, data: UserCreate) -> User:
        for field in ("uid", "username", "email"):
            column = getattr(models.User, field)
            if await self._first(select(models.User).where(column == getattr(data, field)), User):
                logger.info("Rejected user create: %s already taken", field)
                raise Conflict(f"{field.capitalize()} already exists")
        return await self._insert(models.User, User, data, "User already exists")

    async def update_user(self, id: int, fields: Mapping[str, Any]) -> User:
        changes = mutable_fields(fields, UserUpdate)
        if await self.get_user(id) is None:
            raise NotFound("User not found")
        for field in RENAMEABLE_USER_FIELDS:
            if field not in changes:
                continue
            column = getattr(models.User, field)
            other = await self._first(select(models.User).where(column == changes[field]), User)
            if other is not None and other.id != id:
                logger.info("Rejected user %s update: %s already taken", id, field)
                raise Conflict(f"{field.capitalize()} already exists")
        return await self._update(models.User, User, id, changes, "User")

    # Blogs

    def _newest_blogs(self) -> Select:
        return select(models.Blog).order_by(desc(models.Blog.published_at), desc(models.Blog.id))

    async def get_blog(self, id: int) -> Blog | None:
        return await self._get(models.Blog, Blog, id)

    async def get_blogs(self, limit: int = DEFAULT_LIMIT, offset: int = 0) -> list[Blog]:
        return await self._list(self._newest_blogs().limit(limit).offset(offset), Blog)

    async def get_blogs_by_user(self, user_id: int) -> list[Blog]:
        return await self._list(self._newest_blogs().where(models.Blog.user_id == user_id), Blog)

    async def get_blogs_by_category(self, category: str) -> list[Blog]:
        return await self._list(self._newest_blogs().where(models.Blog.category == category), Blog)

    async def create_blog(self, data: BlogCreate) -> Blog:
        return await self._insert(models.Blog, Blog, data, "Blog already exists")

    async def update_blog(self, id: int, fields: Mapping[str, Any]) -> Blog:
        return await self._update(models.Blog, Blog, id, mutable_fields(fields, BlogUpdate), "Blog")

    async def delete_blog(self, id: int) -> bool:
        async with self._sessions() as session:
            row = await session.get(models.Blog, id)
            if row is None:
                return False
            await session.execute(delete(models.Like).where(models.Like.blog_id == id))
            await session.execute(delete(models.Comment).where(models.Comment.blog_id == id))
            await session.delete(row)
            await session.commit()
            return True

    # Likes

    async def get_like(self, user_id: int, blog_id: int) -> Like | None:
        stmt = select(models.Like).where(models.Like.user_id == user_id, models.Like.blog_id == blog_id)
        return await self._first(stmt, Like)

    async def get_likes_by_blog(self, blog_id: int) -> list[Like]:
        stmt = select(models.Like).where(models.Like.blog_id == blog_id).order_by(models.Like.id)
        return await self._list(stmt, Like)

    async def get_likes_by_user(self, user_id: int) -> list[Like]:
        stmt = select(models.Like).where(models.Like.user_id == user_id).order_by(models.Like.id)
        return await self._list(stmt, Like)

    async def create_like(self, data: LikeCreate) -> Like:
        if await self.get_like(data.user_id, data.blog_id) is not None:
            logger.info("Rejected duplicate like user=%s blog=%s", data.user_id, data.blog_id)
            raise Conflict("Like already exists")
        return await self._insert(models.Like, Like, data, "Like already exists")

    async def delete_like(self, id: int) -> bool:
        return await self._delete(models.Like, id)

    # Followers

    async def get_follower(self, follower_id: int, following_id: int) -> Follower | None:
        stmt = select(models.Follower).where(
            models.Follower.follower_id == follower_id,
            models.Follower.following_id == following_id,
        )
        return await self._first(stmt, Follower)

    async def get_followers(self, user_id: int) -> list[Follower]:
        stmt = select(models.Follower).where(models.Follower.following_id == user_id).order_by(models.Follower.id)
        return await self._list(stmt, Follower)

    async def get_following(self, user_id: int) -> list[Follower]:
        stmt = select(models.Follower).where(models.Follower.follower_id == user_id).order_by(models.Follower.id)
        return await self._list(stmt, Follower)

    async def create_follower(self, data: FollowerCreate) -> Follower:
        if data.follower_id == data.following_id:
            raise ValidationError(
                "Users cannot follow themselves",
                errors=[{"loc": ["body", "followingId"], "msg": "must differ from followerId"}],
            )
        if await self.get_follower(data.follower_id, data.following_id) is not None:
            logger.info("Rejected duplicate follow %s -> %s", data.follower_id, data.following_id)
            raise Conflict("Already following this user")
        return await self._insert(models.Follower, Follower, data, "Already following this user")

    async def delete_follower(self, id: int) -> bool:
        return await self._delete(models.Follower, id)

    # Comments

    def _newest_comments(self) -> Select:
        return select(models.Comment).order_by(desc(models.Comment.created_at), desc(models.Comment.id))

    async def get_comment(self, id: int) -> Comment | None:
        return await self._get(models.Comment, Comment, id)

    async def get_comments_by_blog(self, blog_id: int) -> list[Comment]:
        return await self._list(self._newest_comments().where(models.Comment.blog_id == blog_id), Comment)

    async def get_comments_by_user(self, user_id: int) -> list[Comment]:
        return await self._list(self._newest_comments().where(models.Comment.user_id == user_id), Comment)

    async def create_comment(self, data: CommentCreate) -> Comment:
        return await self._insert(models.Comment, Comment, data, "Comment already exists")

    async def update_comment(self, id: int, fields: Mapping[str, Any]) -> Comment:
        return await self._update(models.Comment, Comment, id, mutable_fields(fields, CommentUpdate), "Comment")

    async def delete_comment(self, id: int) -> bool:
        return await self._delete(models.Comment, id)
