"""Integration tests for app-wide behaviour: health, envelopes, auth, limits."""

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from libs.auth.dependencies import get_current_user
from libs.common.config import get_settings
from libs.common.rate_limit import limiter

settings = get_settings()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": settings.SERVICE_NAME}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = await client.get("/health")
    assert generated.headers.get("X-Request-ID")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_route_uses_envelope(client):
    response = await client.get("/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"] is False
    assert body["data"] is None


# ---------------------------------------------------------------------------
# Bearer tokens (real verification, no auth override)
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bad_token_is_unauthorized(client, grocery_app):
    grocery_app.dependency_overrides.pop(get_current_user, None)

    response = await client.get(
        "/address", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_valid_token_resolves_identity(client, grocery_app):
    grocery_app.dependency_overrides.pop(get_current_user, None)
    token = jwt.encode(
        {"sub": "jwt-user", "email": "jwt@example.com", "role": "customer"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )

    response = await client.get("/cart", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["data"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_token_signed_with_other_key_is_rejected(client, grocery_app):
    grocery_app.dependency_overrides.pop(get_current_user, None)
    token = jwt.encode({"sub": "forger"}, "wrong-secret", algorithm="HS256")

    response = await client.get("/cart", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_geo_lookups_are_rate_limited(grocery_app):
    limiter.reset()
    limiter.enabled = True
    try:
        async with AsyncClient(
            transport=ASGITransport(app=grocery_app), base_url="http://test"
        ) as ac:
            params = {"longitude": 77.6, "latitude": 12.9}
            headers = {"X-Forwarded-For": "203.0.113.7"}
            statuses = [
                (
                    await ac.get(
                        "/store/check-serviceability", params=params, headers=headers
                    )
                ).status_code
                for _ in range(61)
            ]
            limited = await ac.get(
                "/store/check-serviceability", params=params, headers=headers
            )
    finally:
        limiter.enabled = False
        limiter.reset()

    assert statuses[:60] == [200] * 60
    assert statuses[60] == 429
    assert limited.status_code == 429
    assert limited.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert "Retry-After" in limited.headers
