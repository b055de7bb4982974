"""Integration test helper fixtures.

These fixtures use the real DB (via db_conn) and the ASGI test client.
"""

import httpx
import pytest

from keygate.main import app


async def _create_owner(conn, owner_id, email, username, plan="free"):
    """Insert an owner row directly into the DB and return it."""
    async with conn.cursor() as cur:
        await cur.execute(
            "INSERT INTO owners (id, email, username, plan) VALUES (%s, %s, %s, %s)",
            (owner_id, email, username, plan),
        )
    return {"id": owner_id, "email": email, "username": username, "plan": plan}


@pytest.fixture
async def test_client(db_conn, counter_store):
    """ASGI client talking to the real test database."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
async def owner(db_conn):
    return await _create_owner(db_conn, "owner-1", "one@test.com", "one")


@pytest.fixture
async def other_owner(db_conn):
    return await _create_owner(db_conn, "owner-2", "two@test.com", "two")


@pytest.fixture
async def business_owner(db_conn):
    return await _create_owner(db_conn, "owner-3", "three@test.com", "three", plan="business")
