"""Shared constants and utilities for load test user classes."""

import json
import os
import random
from datetime import datetime, timedelta
from pathlib import Path

import jwt

NUM_OWNERS = 1000
SEED_FILE = Path(__file__).parent / ".seed_keys.json"
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "CHANGE-ME-IN-PRODUCTION")

_seed_keys: dict[str, str] | None = None


def owner_id(idx: int) -> str:
    return f"loadtest-{idx:05d}"


def random_owner_id() -> str:
    """Pick a random owner from the pre-seeded pool."""
    return owner_id(random.randint(0, NUM_OWNERS - 1))


def seed_keys() -> dict[str, str]:
    """Owner id -> plaintext API key, as written by setup_keys.py."""
    global _seed_keys
    if _seed_keys is None:
        _seed_keys = json.loads(SEED_FILE.read_text()) if SEED_FILE.exists() else {}
    return _seed_keys


def random_seed_key() -> str | None:
    keys = seed_keys()
    return random.choice(list(keys.values())) if keys else None


def session_token(owner: str, ttl: timedelta = timedelta(hours=1)) -> str:
    """Mint a session token the way the upstream login service does."""
    now = datetime.utcnow()
    return jwt.encode({"sub": owner, "iat": now, "exp": now + ttl}, JWT_SECRET_KEY, algorithm="HS256")


def random_ip() -> str:
    """Generate a random private IP for the edge header to distribute rate limit buckets."""
    return f"10.{random.randint(0, 255)}.{random.randint(0, 255)}.{random.randint(1, 254)}"


def auth_header(token: str) -> dict:
    """Build Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


def forwarded_header() -> dict:
    """Build the edge client-IP header with a random private IP."""
    return {"CF-Connecting-IP": random_ip()}
