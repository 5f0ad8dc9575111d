"""
NatJus Backend — Middleware Tests
===================================

Rate limiting and request ids, on a small FastAPI app so the limits can be
tiny and the clock controlled.
"""

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from natjus.middleware.rate_limit import RateLimitMiddleware
from natjus.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware, request_id_var


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def small_app(clock):
    app = FastAPI()

    @app.post("/api/chat")
    async def chat():
        return {"request_id": request_id_var.get("")}

    @app.get("/api/notas")
    async def notas():
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware, max_requests=2, window_seconds=60, clock=clock)
    app.add_middleware(RequestIDMiddleware)
    return app


@pytest_asyncio.fixture
async def client(small_app):
    async with AsyncClient(transport=ASGITransport(app=small_app), base_url="http://testserver") as c:
        yield c


async def test_limit_applies_to_post_chat(client, clock):
    assert (await client.post("/api/chat")).status_code == 200
    assert (await client.post("/api/chat")).status_code == 200

    blocked = await client.post("/api/chat")

    assert blocked.status_code == 429
    assert blocked.json()["error"] == "rate_limit_exceeded"
    assert blocked.headers["Retry-After"] == "61"


async def test_window_slides(client, clock):
    await client.post("/api/chat")
    await client.post("/api/chat")

    clock.now += 61

    assert (await client.post("/api/chat")).status_code == 200


async def test_reads_are_not_limited(client):
    for _ in range(5):
        assert (await client.get("/api/notas")).status_code == 200


async def test_request_id_header_matches_context(client):
    response = await client.post("/api/chat")

    request_id = response.headers[REQUEST_ID_HEADER]
    assert len(request_id) == 8
    assert response.json()["request_id"] == request_id
