"""Tests for the HTTP router: bearer auth, OTP endpoints and admin policy."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from conftest import ADMIN_ID, ALICE_ID
from otp_gateway.api.router import INVALID_CODE_DETAIL, router
from otp_gateway.config import settings
from otp_gateway.database.repository import SqlPrincipalDirectory
from otp_gateway.delivery.base import Channel
from otp_gateway.models.principal import PrincipalRole
from otp_gateway.services.admin_service import AdminService
from otp_gateway.services.auth_service import AuthService
from otp_gateway.services.credentials import CredentialVerifier
from otp_gateway.services.session_store import PrincipalRef, SessionTokenStore


class StaticVerifier(CredentialVerifier):
    """Accepts a fixed set of username / password pairs."""

    ACCOUNTS = {
        "alice": ("s3cret", ALICE_ID),
        "admin": ("adm1n", ADMIN_ID),
        "ghost": ("boo", 999),
    }

    async def verify(self, username: str, password: str) -> int | None:
        entry = self.ACCOUNTS.get(username)
        if entry is None or entry[0] != password:
            return None
        return entry[1]


@pytest.fixture
def session_store(clock) -> SessionTokenStore:
    return SessionTokenStore(ttl_seconds=1800, clock=clock)


@pytest_asyncio.fixture
async def client(otp_service, session_store, session_factory):
    app = FastAPI()
    app.state.otp_service = otp_service
    app.state.admin_service = AdminService(otp_service)
    app.state.session_store = session_store
    app.state.auth_service = AuthService(
        StaticVerifier(), SqlPrincipalDirectory(session_factory), session_store
    )
    app.include_router(router)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def user_headers(session_store) -> dict[str, str]:
    token = session_store.issue(PrincipalRef(id=ALICE_ID, role=PrincipalRole.USER))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(session_store) -> dict[str, str]:
    token = session_store.issue(PrincipalRef(id=ADMIN_ID, role=PrincipalRole.ADMIN))
    return {"Authorization": f"Bearer {token}"}


def _last_code(backends, channel: Channel) -> str:
    _, text = backends[channel].sent[-1]
    return text.rsplit(" ", 1)[-1]


# ── Auth ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_requests_without_token_are_unauthorized(client):
    resp = await client.post("/otp/validate", json={"code": "123456"})
    assert resp.status_code == 401

    resp = await client.post(
        "/otp/validate", json={"code": "123456"}, headers={"Authorization": "Bearer bogus"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_unauthorized(client, user_headers, clock):
    clock.advance(1801)
    resp = await client.post("/otp/validate", json={"code": "123456"}, headers=user_headers)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_token(client, user_headers):
    resp = await client.post("/auth/logout", headers=user_headers)
    assert resp.status_code == 204

    resp = await client.post("/otp/validate", json={"code": "123456"}, headers=user_headers)
    assert resp.status_code == 401


# ── Token issue ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_token_from_credentials_authorises_requests(client, backends):
    resp = await client.post("/auth/token", json={"username": "alice", "password": "s3cret"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 1800

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    resp = await client.post("/otp/generate", json={"channel": "EMAIL"}, headers=headers)
    assert resp.status_code == 202
    assert backends[Channel.EMAIL].sent[-1][0] == "alice@example.com"


@pytest.mark.asyncio
async def test_token_carries_principal_role(client):
    resp = await client.post("/auth/token", json={"username": "admin", "password": "adm1n"})
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    resp = await client.get("/admin/policy", headers=headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("username", "password"),
    [("alice", "wrong"), ("mallory", "s3cret"), ("ghost", "boo")],
)
async def test_token_rejected(client, username, password):
    resp = await client.post("/auth/token", json={"username": username, "password": password})
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


# ── OTP flow ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_then_validate_once(client, user_headers, backends):
    resp = await client.post(
        "/otp/generate",
        json={"operation_id": "op1", "channel": "FILE"},
        headers=user_headers,
    )
    assert resp.status_code == 202
    assert "code" not in resp.json()

    code = _last_code(backends, Channel.FILE)
    resp = await client.post("/otp/validate", json={"code": code}, headers=user_headers)
    assert resp.status_code == 200
    assert resp.json() == {"valid": True}

    resp = await client.post("/otp/validate", json={"code": code}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == INVALID_CODE_DETAIL


@pytest.mark.asyncio
async def test_expired_and_unknown_codes_look_the_same(client, user_headers, backends, clock):
    await client.post("/otp/generate", json={"channel": "EMAIL"}, headers=user_headers)
    code = _last_code(backends, Channel.EMAIL)
    clock.advance(301)

    expired = await client.post("/otp/validate", json={"code": code}, headers=user_headers)
    unknown = await client.post("/otp/validate", json={"code": "000000"}, headers=user_headers)

    assert expired.status_code == unknown.status_code == 400
    assert expired.json() == unknown.json()


@pytest.mark.asyncio
async def test_generate_unknown_channel(client, user_headers):
    resp = await client.post("/otp/generate", json={"channel": "FAX"}, headers=user_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_generate_delivery_failure(client, user_headers, backends):
    backends[Channel.SMS].fail = True
    resp = await client.post("/otp/generate", json={"channel": "SMS"}, headers=user_headers)
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_generate_for_principal_without_address(client, admin_headers):
    # The admin account has no phone number
    resp = await client.post("/otp/generate", json={"channel": "SMS"}, headers=admin_headers)
    assert resp.status_code == 404


# ── Admin policy ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_policy_requires_admin(client, user_headers):
    resp = await client.get("/admin/policy", headers=user_headers)
    assert resp.status_code == 403

    resp = await client.patch(
        "/admin/policy", json={"length": 8, "ttl_seconds": 120}, headers=user_headers
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_updates_policy(client, admin_headers, user_headers, backends):
    resp = await client.get("/admin/policy", headers=admin_headers)
    assert resp.json() == {"length": 6, "ttl_seconds": 300}

    resp = await client.patch(
        "/admin/policy", json={"length": 8, "ttl_seconds": 120}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json() == {"length": 8, "ttl_seconds": 120}

    await client.post("/otp/generate", json={"channel": "FILE"}, headers=user_headers)
    assert len(_last_code(backends, Channel.FILE)) == 8


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"length": 3, "ttl_seconds": 300},
        {"length": 6, "ttl_seconds": 59},
        {"length": 11, "ttl_seconds": 300},
    ],
)
async def test_admin_policy_bounds(client, admin_headers, body):
    resp = await client.patch("/admin/policy", json=body, headers=admin_headers)
    assert resp.status_code == 422

    resp = await client.get("/admin/policy", headers=admin_headers)
    assert resp.json() == {"length": 6, "ttl_seconds": 300}


# ── Admin cleanup ────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_purges_principal_codes(client, admin_headers, user_headers, backends):
    for _ in range(2):
        await client.post("/otp/generate", json={"channel": "FILE"}, headers=user_headers)
    code = _last_code(backends, Channel.FILE)

    resp = await client.delete(f"/admin/principals/{ALICE_ID}/codes", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"deleted": 2}

    resp = await client.post("/otp/validate", json={"code": code}, headers=user_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_purge_requires_admin(client, user_headers):
    resp = await client.delete(f"/admin/principals/{ALICE_ID}/codes", headers=user_headers)
    assert resp.status_code == 403


# ── Runner ───────────────────────────────────────────────

def test_run_serves_app_with_uvicorn():
    from otp_gateway import main

    with patch.object(main.uvicorn, "run") as run:
        main.run()

    args, kwargs = run.call_args
    assert args == (main.app,)
    assert (kwargs["host"], kwargs["port"]) == (settings.host, settings.port)
