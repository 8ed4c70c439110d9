from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from quillpost.errors import NotFound
from quillpost.schemas import (
    Blog,
    BlogCreate,
    BlogUpdate,
    Comment,
    CommentCreate,
    CommentUpdate,
    DeleteResult,
    Follower,
    FollowerCreate,
    Like,
    LikeCreate,
    User,
    UserCreate,
    UserUpdate,
)
from quillpost.settings import Settings
from quillpost.storage import Storage

router = APIRouter(prefix="/api")


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _found(value, message: str):
    if value is None:
        raise NotFound(message)
    return value


# Users


@router.get("/users/uid/{uid}", response_model=User)
async def get_user_by_uid(uid: str, storage: Storage = Depends(get_storage)) -> User:
    return _found(await storage.get_user_by_uid(uid), "User not found")


@router.get("/users/username/{username}", response_model=User)
async def get_user_by_username(username: str, storage: Storage = Depends(get_storage)) -> User:
    return _found(await storage.get_user_by_username(username), "User not found")


@router.get("/users/email/{email}", response_model=User)
async def get_user_by_email(email: str, storage: Storage = Depends(get_storage)) -> User:
    return _found(await storage.get_user_by_email(email), "User not found")


@router.get("/users/{user_id}", response_model=User)
async def get_user(user_id: int, storage: Storage = Depends(get_storage)) -> User:
    return _found(await storage.get_user(user_id), "User not found")


@router.post("/users", response_model=User, status_code=201)
async def create_user(payload: UserCreate, storage: Storage = Depends(get_storage)) -> User:
    return await storage.create_user(payload)


@router.put("/users/{user_id}", response_model=User)
async def update_user(user_id: int, payload: UserUpdate, storage: Storage = Depends(get_storage)) -> User:
    return await storage.update_user(user_id, payload.changes())


# Blogs


@router.get("/blogs", response_model=list[Blog])
async def list_blogs(
    limit: int | None = Query(default=None, ge=0),
    offset: int = Query(default=0, ge=0),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> list[Blog]:
    if limit is None:
        limit = settings.default_page_size
    limit = min(limit, settings.max_page_size)
    return await storage.get_blogs(limit=limit, offset=offset)


@router.get("/blogs/user/{user_id}", response_model=list[Blog])
async def list_blogs_by_user(user_id: int, storage: Storage = Depends(get_storage)) -> list[Blog]:
    return await storage.get_blogs_by_user(user_id)


@router.get("/blogs/category/{category}", response_model=list[Blog])
async def list_blogs_by_category(category: str, storage: Storage = Depends(get_storage)) -> list[Blog]:
    return await storage.get_blogs_by_category(category)


@router.get("/blogs/{blog_id}", response_model=Blog)
async def get_blog(blog_id: int, storage: Storage = Depends(get_storage)) -> Blog:
    return _found(await storage.get_blog(blog_id), "Blog not found")


@router.post("/blogs", response_model=Blog, status_code=201)
async def create_blog(payload: BlogCreate, storage: Storage = Depends(get_storage)) -> Blog:
    return await storage.create_blog(payload)


@router.put("/blogs/{blog_id}", response_model=Blog)
async def update_blog(blog_id: int, payload: BlogUpdate, storage: Storage = Depends(get_storage)) -> Blog:
    return await storage.update_blog(blog_id, payload.changes())


@router.delete("/blogs/{blog_id}", response_model=DeleteResult)
async def delete_blog(blog_id: int, storage: Storage = Depends(get_storage)) -> DeleteResult:
    if not await storage.delete_blog(blog_id):
        raise NotFound("Blog not found")
    return DeleteResult()


# Likes


@router.get("/likes/blog/{blog_id}", response_model=list[Like])
async def list_likes_by_blog(blog_id: int, storage: Storage = Depends(get_storage)) -> list[Like]:
    return await storage.get_likes_by_blog(blog_id)


@router.get("/likes/user/{user_id}", response_model=list[Like])
async def list_likes_by_user(user_id: int, storage: Storage = Depends(get_storage)) -> list[Like]:
    return await storage.get_likes_by_user(user_id)


@router.get("/likes/user/{user_id}/blog/{blog_id}", response_model=Like)
async def get_like(user_id: int, blog_id: int, storage: Storage = Depends(get_storage)) -> Like:
    return _found(await storage.get_like(user_id, blog_id), "Like not found")


@router.post("/likes", response_model=Like, status_code=201)
async def create_like(payload: LikeCreate, storage: Storage = Depends(get_storage)) -> Like:
    return await storage.create_like(payload)


@router.delete("/likes/{like_id}", response_model=DeleteResult)
async def delete_like(like_id: int, storage: Storage = Depends(get_storage)) -> DeleteResult:
    if not await storage.delete_like(like_id):
        raise NotFound("Like not found")
    return DeleteResult()


# Followers


@router.get("/followers/{user_id}", response_model=list[Follower])
async def list_followers(user_id: int, storage: Storage = Depends(get_storage)) -> list[Follower]:
    return await storage.get_followers(user_id)


@router.get("/following/{user_id}", response_model=list[Follower])
async def list_following(user_id: int, storage: Storage = Depends(get_storage)) -> list[Follower]:
    return await storage.get_following(user_id)


@router.get("/following/{follower_id}/{following_id}", response_model=Follower)
async def get_follow(follower_id: int, following_id: int, storage: Storage = Depends(get_storage)) -> Follower:
    return _found(await storage.get_follower(follower_id, following_id), "Follower relationship not found")


@router.post("/followers", response_model=Follower, status_code=201)
async def create_follower(payload: FollowerCreate, storage: Storage = Depends(get_storage)) -> Follower:
    return await storage.create_follower(payload)


@router.delete("/followers/{follow_id}", response_model=DeleteResult)
async def delete_follower(follow_id: int, storage: Storage = Depends(get_storage)) -> DeleteResult:
    if not await storage.delete_follower(follow_id):
        raise NotFound("Follower relationship not found")
    return DeleteResult()


# Comments


@router.get("/comments/blog/{blog_id}", response_model=list[Comment])
async def list_comments_by_blog(blog_id: int, storage: Storage = Depends(get_storage)) -> list[Comment]:
    return await storage.get_comments_by_blog(blog_id)


@router.get("/comments/user/{user_id}", response_model=list[Comment])
async def list_comments_by_user(user_id: int, storage: Storage = Depends(get_storage)) -> list[Comment]:
    return await storage.get_comments_by_user(user_id)


@router.get("/comments/{comment_id}", response_model=Comment)
async def get_comment(comment_id: int, storage: Storage = Depends(get_storage)) -> Comment:
    return _found(await storage.get_comment(comment_id), "Comment not found")


@router.post("/comments", response_model=Comment, status_code=201)
async def create_comment(payload: CommentCreate, storage: Storage = Depends(get_storage)) -> Comment:
    return await storage.create_comment(payload)


@router.put("/comments/{comment_id}", response_model=Comment)
async def update_comment(
    comment_id: int, payload: CommentUpdate, storage: Storage = Depends(get_storage)
) -> Comment:
    return await storage.update_comment(comment_id, payload.changes())


@router.delete("/comments/{comment_id}", response_model=DeleteResult)
async def delete_comment(comment_id: int, storage: Storage = Depends(get_storage)) -> DeleteResult:
    if not await storage.delete_comment(comment_id):
        raise NotFound("Comment not found")
    return DeleteResult()
