"""Unit tests for the /auth/{logout,status,userinfo} endpoints."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from oidc_gate.servers.adapters import SESSION_COOKIE
from oidc_gate.servers.auth import _safe_next


def _sid(response: httpx.Response) -> str:
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if name.strip() == SESSION_COOKIE:
            return rest.split(";", 1)[0]
    raise AssertionError("no session cookie issued")


def _cookie(session_id: str) -> dict[str, str]:
    return {"cookie": f"{SESSION_COOKIE}={session_id}"}


async def _authenticated_session(client: httpx.AsyncClient) -> str:
    first = await client.get("/protected")
    state = parse_qs(urlsplit(first.headers["location"]).query)["state"][0]
    callback = await client.get(
        f"/auth/callback?code=good-code&state={state}", headers=_cookie(_sid(first))
    )
    return _sid(callback)


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        (None, "/"),
        ("", "/"),
        ("/bye", "/bye"),
        ("//evil.example/x", "/"),
        ("https://evil.example/", "/"),
    ],
)
def test_safe_next(target, expected):
    assert _safe_next(target) == expected


@pytest.mark.anyio
async def test_status_follows_the_handshake(client: httpx.AsyncClient):
    anonymous = await client.get("/auth/status")
    assert anonymous.json() == {"state": "unchallenged", "auth_method": "GOOGLE"}

    first = await client.get("/protected")
    pending = await client.get("/auth/status", headers=_cookie(_sid(first)))
    assert pending.json()["state"] == "challenge_sent"

    sid = await _authenticated_session(client)
    done = await client.get("/auth/status", headers=_cookie(sid))
    assert done.json()["state"] == "authenticated"


@pytest.mark.anyio
async def test_userinfo(client: httpx.AsyncClient):
    missing = await client.get("/auth/userinfo")
    assert missing.status_code == 401
    assert missing.json() == {"error": "not_authenticated"}

    sid = await _authenticated_session(client)
    resp = await client.get("/auth/userinfo", headers=_cookie(sid))
    assert resp.status_code == 200
    assert resp.json() == {"sub": "1234567890", "email": "ada@example.com"}


@pytest.mark.anyio
async def test_logout_drops_authentication(client: httpx.AsyncClient, login_service):
    sid = await _authenticated_session(client)

    resp = await client.post("/auth/logout?next=/bye", headers=_cookie(sid))
    assert resp.status_code == 303
    assert resp.headers["location"] == "/bye"
    assert login_service.logouts == 1

    status = await client.get("/auth/status", headers=_cookie(sid))
    assert status.json()["state"] == "challenge_sent"

    again = await client.get("/protected", headers=_cookie(sid))
    assert again.status_code == 303

    # logging out twice is harmless
    await client.get("/auth/logout", headers=_cookie(sid))
    assert login_service.logouts == 1


@pytest.mark.anyio
async def test_logout_without_session(client: httpx.AsyncClient):
    resp = await client.get("/auth/logout?next=//evil.example")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"
