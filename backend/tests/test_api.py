from __future__ import annotations

from fastapi.testclient import TestClient

from quillpost.main import create_app
from quillpost.storage import MemoryStorage
from tests.factories import blog_payload, user_payload


def _create_users(client, *names):
    for name in names:
        assert client.post("/api/users", json=user_payload(name)).status_code == 201


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    assert resp.headers["x-app"] == "quillpost"


# Users


def test_create_and_fetch_user(client):
    resp = client.post("/api/users", json=user_payload("alice", photoURL="https://cdn.example.com/a.png"))
    assert resp.status_code == 201
    body = resp.json()
    assert body["id"] == 1
    assert body["displayName"] == "Alice"
    assert body["photoURL"] == "https://cdn.example.com/a.png"
    assert body["bio"] is None

    assert client.get("/api/users/1").json() == body
    assert client.get("/api/users/uid/uid-alice").json() == body
    assert client.get("/api/users/username/alice").json() == body
    assert client.get("/api/users/email/alice@example.com").json() == body


def test_unknown_user_is_404(client):
    for path in ("/api/users/5", "/api/users/uid/nope", "/api/users/username/nope"):
        resp = client.get(path)
        assert resp.status_code == 404
        assert resp.json() == {"message": "User not found"}


def test_non_integer_id_is_400(client):
    resp = client.get("/api/users/abc")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Validation error"


def test_duplicate_username_is_409(client):
    _create_users(client, "alice")
    resp = client.post("/api/users", json=user_payload("alice", uid="uid-2", email="other@example.com"))
    assert resp.status_code == 409
    assert resp.json() == {"message": "Username already exists"}
    assert client.get("/api/users/2").status_code == 404


def test_invalid_user_payload_is_400_with_field_detail(client):
    resp = client.post("/api/users", json={"uid": "x", "username": "alice"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Validation error"
    missing = {tuple(err["loc"]) for err in body["errors"]}
    assert ("body", "email") in missing
    assert ("body", "displayName") in missing


def test_update_user_partial(client):
    client.post("/api/users", json=user_payload("alice", bio="old", location="Oslo"))
    resp = client.put("/api/users/1", json={"bio": "new", "uid": "ignored"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["bio"] == "new"
    assert body["location"] == "Oslo"
    assert body["uid"] == "uid-alice"


def test_update_missing_user_is_404(client):
    resp = client.put("/api/users/42", json={"bio": "x"})
    assert resp.status_code == 404
    assert resp.json() == {"message": "User not found"}


def test_rename_of_missing_user_is_404_even_when_name_taken(client):
    _create_users(client, "alice")
    resp = client.put("/api/users/99", json={"username": "alice"})
    assert resp.status_code == 404
    assert resp.json() == {"message": "User not found"}


def test_rename_to_taken_username_is_409(client):
    _create_users(client, "alice", "bob")
    assert client.put("/api/users/2", json={"username": "alice"}).status_code == 409
    assert client.put("/api/users/2", json={"email": "alice@example.com"}).status_code == 409
    # Keeping your own username is not a conflict.
    assert client.put("/api/users/2", json={"username": "bob"}).status_code == 200


def test_update_user_rejects_null_for_required_field(client):
    _create_users(client, "alice")
    assert client.put("/api/users/1", json={"username": None}).status_code == 400


# Blogs


def test_blog_feed_pagination(client):
    _create_users(client, "alice")
    for minute in range(15):
        assert client.post("/api/blogs", json=blog_payload(1, minutes=minute)).status_code == 201

    page1 = client.get("/api/blogs", params={"limit": 10, "offset": 0}).json()
    assert [b["id"] for b in page1] == list(range(15, 5, -1))

    page2 = client.get("/api/blogs", params={"limit": 10, "offset": 10}).json()
    assert [b["id"] for b in page2] == [5, 4, 3, 2, 1]

    assert client.get("/api/blogs", params={"offset": 20}).json() == []
    assert len(client.get("/api/blogs").json()) == 10


def test_blog_feed_rejects_negative_paging(client):
    assert client.get("/api/blogs", params={"limit": -1}).status_code == 400
    assert client.get("/api/blogs", params={"offset": -5}).status_code == 400
    assert client.get("/api/blogs", params={"limit": "ten"}).status_code == 400


def test_blog_feed_caps_limit(client, test_settings):
    for minute in range(test_settings.max_page_size + 5):
        client.post("/api/blogs", json=blog_payload(1, minutes=minute))
    resp = client.get("/api/blogs", params={"limit": 1000})
    assert len(resp.json()) == test_settings.max_page_size


def test_category_and_user_listings(client):
    _create_users(client, "alice", "bob")
    client.post("/api/blogs", json=blog_payload(1, minutes=0, category="Tech"))
    client.post("/api/blogs", json=blog_payload(2, minutes=5, category="Tech"))
    client.post("/api/blogs", json=blog_payload(2, minutes=9, category="Food"))

    assert [b["id"] for b in client.get("/api/blogs/category/Tech").json()] == [2, 1]
    assert client.get("/api/blogs/category/tech").json() == []
    assert [b["id"] for b in client.get("/api/blogs/user/2").json()] == [3, 2]
    assert [b["id"] for b in client.get("/api/blogs").json()] == [3, 2, 1]


def test_blog_published_at_defaults_to_now(client):
    payload = blog_payload(1)
    del payload["publishedAt"]
    resp = client.post("/api/blogs", json=payload)
    assert resp.status_code == 201
    assert resp.json()["publishedAt"]


def test_blog_update_and_delete(client):
    client.post("/api/blogs", json=blog_payload(1, tags=["a", "b"]))

    resp = client.put("/api/blogs/1", json={"title": "Renamed"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["tags"] == ["a", "b"]

    assert client.put("/api/blogs/9", json={"title": "x"}).status_code == 404

    assert client.delete("/api/blogs/1").json() == {"success": True}
    assert client.delete("/api/blogs/1").status_code == 404
    assert client.get("/api/blogs/1").status_code == 404


def test_invalid_blog_is_400(client):
    resp = client.post("/api/blogs", json={"userId": 1, "title": "No body"})
    assert resp.status_code == 400


# Likes


def test_like_unlike_cycle(client):
    resp = client.post("/api/likes", json={"userId": 1, "blogId": 1})
    assert resp.status_code == 201
    like = resp.json()
    assert like == {"id": 1, "userId": 1, "blogId": 1}

    dup = client.post("/api/likes", json={"userId": 1, "blogId": 1})
    assert dup.status_code == 409
    assert dup.json() == {"message": "Like already exists"}

    assert client.get("/api/likes/user/1/blog/1").json() == like
    assert client.get("/api/likes/blog/1").json() == [like]
    assert client.get("/api/likes/user/1").json() == [like]

    assert client.delete("/api/likes/1").json() == {"success": True}
    assert client.delete("/api/likes/1").status_code == 404
    assert client.get("/api/likes/user/1/blog/1").status_code == 404

    assert client.post("/api/likes", json={"userId": 1, "blogId": 1}).json()["id"] == 2


def test_deleting_blog_removes_its_likes_and_comments(client):
    client.post("/api/blogs", json=blog_payload(1))
    client.post("/api/likes", json={"userId": 2, "blogId": 1})
    client.post("/api/comments", json={"userId": 2, "blogId": 1, "content": "hi"})

    client.delete("/api/blogs/1")

    assert client.get("/api/likes/blog/1").json() == []
    assert client.get("/api/comments/blog/1").json() == []


# Followers


def test_follow_cycle(client):
    resp = client.post("/api/followers", json={"followerId": 1, "followingId": 2})
    assert resp.status_code == 201
    follow = resp.json()
    assert follow == {"id": 1, "followerId": 1, "followingId": 2}

    dup = client.post("/api/followers", json={"followerId": 1, "followingId": 2})
    assert dup.status_code == 409

    assert client.get("/api/followers/2").json() == [follow]
    assert client.get("/api/following/1").json() == [follow]
    assert client.get("/api/followers/1").json() == []
    assert client.get("/api/following/1/2").json() == follow
    assert client.get("/api/following/2/1").status_code == 404

    assert client.delete("/api/followers/1").json() == {"success": True}
    assert client.delete("/api/followers/1").status_code == 404


def test_self_follow_is_400(client):
    resp = client.post("/api/followers", json={"followerId": 3, "followingId": 3})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Users cannot follow themselves"


# Comments


def test_comment_cycle(client):
    resp = client.post("/api/comments", json={"userId": 1, "blogId": 1, "content": "First"})
    assert resp.status_code == 201
    first = resp.json()
    assert first["parentId"] is None
    assert first["createdAt"]

    reply = client.post(
        "/api/comments",
        json={"userId": 2, "blogId": 1, "content": "Reply", "parentId": first["id"], "createdAt": "2030-01-01T00:00:00"},
    ).json()

    assert [c["id"] for c in client.get("/api/comments/blog/1").json()] == [reply["id"], first["id"]]
    assert [c["id"] for c in client.get("/api/comments/user/2").json()] == [reply["id"]]
    assert client.get(f"/api/comments/{first['id']}").json() == first

    edited = client.put(f"/api/comments/{first['id']}", json={"content": "Edited"}).json()
    assert edited["content"] == "Edited"
    assert edited["createdAt"] == first["createdAt"]

    assert client.put("/api/comments/99", json={"content": "x"}).status_code == 404
    assert client.delete(f"/api/comments/{first['id']}").json() == {"success": True}
    assert client.delete(f"/api/comments/{first['id']}").status_code == 404
    assert client.get(f"/api/comments/{first['id']}").status_code == 404


def test_empty_comment_is_400(client):
    assert client.post("/api/comments", json={"userId": 1, "blogId": 1, "content": ""}).status_code == 400


# App lifecycle


class RecordingStorage(MemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.events: list[str] = []

    async def start(self) -> None:
        self.events.append("start")

    async def close(self) -> None:
        self.events.append("close")


def test_injected_storage_is_started_and_closed(test_settings):
    storage = RecordingStorage()
    app = create_app(storage=storage, app_settings=test_settings)
    assert app.state.storage is storage
    with TestClient(app) as client:
        assert storage.events == ["start"]
        client.post("/api/users", json=user_payload("alice"))
    assert storage.events == ["start", "close"]
    assert storage.users.get_by_id(1).username == "alice"


def test_storage_built_from_settings(test_settings):
    app = create_app(app_settings=test_settings)
    assert isinstance(app.state.storage, MemoryStorage)


class BrokenStorage(MemoryStorage):
    async def get_blog(self, id: int):
        raise RuntimeError("disk on fire")


def test_unexpected_error_is_500_with_generic_body(test_settings):
    app = create_app(storage=BrokenStorage(), app_settings=test_settings)
    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/api/blogs/1")
    assert resp.status_code == 500
    assert resp.json() == {"message": "Internal server error"}
