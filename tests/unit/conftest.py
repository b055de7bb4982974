"""Unit test fixtures: an in-memory stand-in for the api_keys/owners tables."""

import itertools
from contextlib import asynccontextmanager
from unittest.mock import MagicMock, patch

import pytest

from keygate.dependencies import get_db
from keygate.main import app
from keygate.services.counter_store import MemoryCounterStore, set_counter_store

_METADATA_FIELDS = (
    "id",
    "owner_id",
    "name",
    "key_prefix",
    "created_at",
    "last_used_at",
    "expires_at",
    "revoked",
    "revoked_at",
)


class FakeClock:
    """Settable clock for counter stores. Starts 20s into a one-minute window."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKeyTable:
    """Mirrors the keygate.db.api_keys / keygate.db.owners function signatures."""

    def __init__(self):
        self.owners: dict[str, dict] = {}
        self.rows: dict[str, dict] = {}
        self._seq = itertools.count()
        self.touched: list[str] = []

    def add_owner(self, id="owner-a", email="a@example.com", username="alice", plan="free"):
        owner = {"id": id, "email": email, "username": username, "plan": plan}
        self.owners[id] = owner
        return owner

    @staticmethod
    def _metadata(row: dict) -> dict:
        return {k: row[k] for k in _METADATA_FIELDS}

    # -- owners ---------------------------------------------------------

    async def get_owner_by_id(self, conn, owner_id):
        return self.owners.get(owner_id)

    # -- api_keys -------------------------------------------------------

    async def create_api_key_within_limit(
        self,
        conn,
        id,
        owner_id,
        name,
        key_prefix,
        key_hash,
        max_active,
        created_at,
        expires_at=None,
    ):
        active = sum(
            1 for r in self.rows.values() if r["owner_id"] == owner_id and not r["revoked"]
        )
        if active >= max_active:
            return None
        row = {
            "id": id,
            "owner_id": owner_id,
            "name": name,
            "key_prefix": key_prefix,
            "key_hash": key_hash,
            "created_at": created_at,
            "last_used_at": None,
            "expires_at": expires_at,
            "revoked": False,
            "revoked_at": None,
            "_seq": next(self._seq),
        }
        self.rows[id] = row
        return self._metadata(row)

    async def get_api_key_by_hash(self, conn, key_hash):
        for row in self.rows.values():
            if row["key_hash"] == key_hash:
                owner = self.owners.get(row["owner_id"], {})
                return {
                    "id": row["id"],
                    "owner_id": row["owner_id"],
                    "name": row["name"],
                    "key_prefix": row["key_prefix"],
                    "expires_at": row["expires_at"],
                    "revoked": row["revoked"],
                    "owner_email": owner.get("email"),
                    "owner_username": owner.get("username"),
                }
        return None

    async def get_api_key_by_id(self, conn, key_id):
        row = self.rows.get(key_id)
        return self._metadata(row) if row else None

    async def list_api_keys_for_owner(self, conn, owner_id):
        rows = [r for r in self.rows.values() if r["owner_id"] == owner_id]
        rows.sort(key=lambda r: (r["created_at"], r["_seq"]), reverse=True)
        return [self._metadata(r) for r in rows]

    async def revoke_api_key(self, conn, key_id, revoked_at):
        row = self.rows.get(key_id)
        if row is None or row["revoked"]:
            return False
        row["revoked"] = True
        row["revoked_at"] = revoked_at
        return True

    async def touch_last_used(self, conn, key_id, used_at):
        self.touched.append(key_id)
        if key_id in self.rows:
            self.rows[key_id]["last_used_at"] = used_at


@asynccontextmanager
async def _fake_connection():
    yield MagicMock()


async def _fake_get_db():
    yield MagicMock()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def key_table():
    """Route the key store, owner lookup and background writes to a FakeKeyTable."""
    table = FakeKeyTable()
    app.dependency_overrides[get_db] = _fake_get_db
    with (
        patch("keygate.services.api_key.db_api_keys", table),
        patch("keygate.services.api_key.get_connection", _fake_connection),
        patch("keygate.dependencies.get_owner_by_id", table.get_owner_by_id),
    ):
        yield table
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def owner_a(key_table):
    return key_table.add_owner("owner-a", "a@example.com", "alice")


@pytest.fixture
def owner_b(key_table):
    return key_table.add_owner("owner-b", "b@example.com", "bob")



@pytest.fixture
def counter_store(fake_clock):
    """In-memory counter store pinned to the fake clock, so windows never roll mid-test."""
    store = MemoryCounterStore(clock=fake_clock)
    set_counter_store(store)
    yield store
    set_counter_store(None)
