#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import random
import time
import urllib.error
import urllib.request
import uuid
from datetime import datetime, timezone

API_BASE = os.getenv("API_BASE", "http://backend:8000").rstrip("/")
INTERVAL_SECONDS = float(os.getenv("INTERVAL_SECONDS", "0.75"))
CATEGORIES = ["Tech", "Travel", "Food", "Culture"]


def _request(method: str, path: str, payload: dict | None = None) -> tuple[int, dict | list | str | None]:
    url = f"{API_BASE}{path}"
    body = None
    headers = {"accept": "application/json"}
    if payload is not None:
        body = json.dumps(payload).encode("utf-8")
        headers["content-type"] = "application/json"

    req = urllib.request.Request(url=url, data=body, headers=headers, method=method)
    try:
        with urllib.request.urlopen(req, timeout=8) as resp:
            raw = resp.read().decode("utf-8")
            return resp.status, json.loads(raw) if raw else None
    except urllib.error.HTTPError as exc:
        raw = exc.read().decode("utf-8")
        return exc.code, raw
    except Exception as exc:  # noqa: BLE001
        return 0, str(exc)


def _create_user() -> int | None:
    handle = f"bot{uuid.uuid4().hex[:8]}"
    payload = {
        "uid": uuid.uuid4().hex,
        "username": handle,
        "email": f"{handle}@example.com",
        "displayName": f"Load Bot {handle[-4:]}",
    }
    status, data = _request("POST", "/api/users", payload)
    if status == 201 and isinstance(data, dict):
        return data.get("id")
    return None


def _create_blog(user_id: int) -> int | None:
    payload = {
        "userId": user_id,
        "title": f"Synthetic post {datetime.now(tz=timezone.utc).isoformat()}",
        "content": "Workflow simulated by traffic generator.",
        "category": random.choice(CATEGORIES),
        "tags": ["synthetic"],
    }
    status, data = _request("POST", "/api/blogs", payload)
    if status == 201 and isinstance(data, dict):
        return data.get("id")
    return None


def _engage_with_latest(user_id: int) -> None:
    status, data = _request("GET", "/api/blogs?limit=1")
    if status != 200 or not isinstance(data, list) or not data:
        return
    blog = data[0]
    # 409 on a repeat like is expected; toggle it off instead.
    status, like = _request("POST", "/api/likes", {"userId": user_id, "blogId": blog["id"]})
    if status == 409:
        status, like = _request("GET", f"/api/likes/user/{user_id}/blog/{blog['id']}")
        if status == 200 and isinstance(like, dict):
            _request("DELETE", f"/api/likes/{like['id']}")
    _request(
        "POST",
        "/api/comments",
        {"userId": user_id, "blogId": blog["id"], "content": "Automated engagement for observability tests."},
    )
    if blog["userId"] != user_id:
        _request("POST", "/api/followers", {"followerId": user_id, "followingId": blog["userId"]})


def run() -> None:
    users: list[int] = []
    while True:
        _request("GET", "/healthz")
        _request("GET", f"/api/blogs?limit={random.choice([5, 10, 20])}")
        if not users or random.random() < 0.05:
            user_id = _create_user()
            if user_id is not None:
                users.append(user_id)
        if users and random.random() < 0.35:
            _create_blog(random.choice(users))
        if users and random.random() < 0.25:
            _engage_with_latest(random.choice(users))
        if random.random() < 0.1:
            _request("GET", f"/api/blogs/category/{random.choice(CATEGORIES)}")
        time.sleep(INTERVAL_SECONDS)


if __name__ == "__main__":
    run()
