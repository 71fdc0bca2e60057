"""Plain helpers shared by the test modules (fixtures live in conftest.py)."""
from __future__ import annotations

import re

from httpx import AsyncClient

PASSWORD = "password123"
_CSRF_RE = re.compile(r'name="csrf_token" value="([^"]+)"')


async def bearer_headers(client: AsyncClient, username: str, password: str = PASSWORD) -> dict:
    resp = await client.post("/api/users/login", auth=(username, password))
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['value']}"}


async def web_login(client: AsyncClient, username: str, password: str = PASSWORD) -> None:
    resp = await client.post("/login", data={"username": username, "password": password})
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"


def csrf_from(html: str) -> str:
    match = _CSRF_RE.search(html)
    assert match, "form carries no csrf token"
    return match.group(1)
