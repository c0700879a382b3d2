"""
Integration tests for the identity boundary.

Tokens resolve to actors; revoked, forged or orphaned tokens are rejected.
"""

from datetime import timedelta

import pytest

from courier_backend.app.core.jwt import create_access_token, create_actor_token
from courier_backend.app.models.enums import ActorRole

from conftest import auth_headers


@pytest.mark.asyncio
async def test_me_returns_actor(client, make_company, make_actor):
    company = await make_company()
    driver = await make_actor(ActorRole.DRIVER, company=company)

    response = await client.get("/v1/auth/me", headers=auth_headers(driver))

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == driver.id
    assert data["role"] == "driver"
    assert data["courier_company_id"] == company.id


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    response = await client.get("/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    response = await client.get("/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_401(client, make_actor):
    actor = await make_actor()
    token = create_actor_token(actor.id, expires_delta=timedelta(minutes=-1))

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_actor_is_401(client):
    response = await client.get("/v1/auth/me", headers=auth_headers(type("Ghost", (), {"id": 777})))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_without_actor_id_is_401(client):
    token = create_access_token({"sub": "someone"})
    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_token(client, make_actor, redis_client_session):
    actor = await make_actor()
    headers = auth_headers(actor)

    response = await client.post("/v1/auth/logout", headers=headers)
    assert response.status_code == 200
    assert len(redis_client_session.store) == 1

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "Token has been revoked"

    # A fresh token still works
    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {create_actor_token(actor.id, timedelta(minutes=5))}"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_inactive_actor_still_authenticates(client, make_actor):
    actor = await make_actor(is_active=False)

    response = await client.get("/v1/auth/me", headers=auth_headers(actor))
    assert response.status_code == 200
    assert response.json()["is_active"] is False


@pytest.mark.asyncio
async def test_roleless_actor_is_forbidden_everywhere(client, make_actor):
    actor = await make_actor(role=None)
    headers = auth_headers(actor)

    response = await client.get("/v1/packages", headers=headers)
    assert response.status_code == 200
    assert response.json()["total"] == 0

    response = await client.get("/v1/driver/route", headers=headers)
    assert response.status_code == 403

    response = await client.get("/v1/admin/companies", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers
