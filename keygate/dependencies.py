from __future__ import annotations

import ipaddress
import logging

from fastapi import Depends, Header, Request

from keygate.config import settings
from keygate.context import AuthenticatedKey, Identity, bind_api_key, get_request_context
from keygate.db.owners import get_owner_by_id
from keygate.db.pool import get_connection
from keygate.errors import InfrastructureFailure, Unauthenticated
from keygate.services import api_key as api_key_service
from keygate.services.session import owner_id_from_session

logger = logging.getLogger(__name__)

BEARER = "Bearer "


async def get_db():
    """Yield a database connection from the pool.

    Raises:
        InfrastructureFailure: No connection could be acquired.
    """
    acquired = False
    try:
        async with get_connection() as conn:
            acquired = True
            yield conn
    except Exception:
        if acquired:
            raise
        logger.exception("Could not acquire a database connection")
        raise InfrastructureFailure()


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith(BEARER):
        return None
    return authorization[len(BEARER) :].strip() or None


async def get_current_owner(
    authorization: str = Header(None),
    conn=Depends(get_db),
) -> dict:
    """Resolve the owner behind an upstream session token.

    Raises:
        Unauthenticated: No session token, an invalid or expired token, or an
            owner that no longer exists.
        InfrastructureFailure: The owner table could not be read.
    """
    token = bearer_token(authorization)
    if token is None:
        raise Unauthenticated("Missing or invalid authorization header")

    # The gate middleware has usually verified the session already.
    ctx = get_request_context()
    owner_id = ctx.identity.owner_id if ctx else None
    if owner_id is None:
        owner_id = owner_id_from_session(token)
    if owner_id is None:
        raise Unauthenticated("Invalid or expired session")

    try:
        owner = await get_owner_by_id(conn, owner_id)
    except Exception:
        logger.exception("Owner lookup failed for %s", owner_id)
        raise InfrastructureFailure()
    if owner is None:
        raise Unauthenticated("Owner not found")
    return owner


async def require_api_key(
    authorization: str = Header(None),
    conn=Depends(get_db),
) -> AuthenticatedKey:
    """Validate the bearer API key and bind it to the request context.

    Runs after the gate middleware has admitted the request, so invalid-key
    guessing is throttled by the rate limiter.
    """
    token = bearer_token(authorization)
    if token is None:
        raise Unauthenticated(
            "Missing or invalid Authorization header. Expected: Bearer <api_key>"
        )
    api_key = await api_key_service.validate_key(conn, token)
    bind_api_key(api_key)
    return api_key


# ---------------------------------------------------------------------------
# Client identity
# ---------------------------------------------------------------------------


def _is_trusted_proxy(addr: str, trusted: list[str]) -> bool:
    """Check if *addr* matches any entry in the trusted proxy list.

    Each entry can be an individual IP, a CIDR network (e.g. "10.0.0.0/8"),
    or ``*`` to trust any peer.
    """
    if "*" in trusted:
        return True

    try:
        ip = ipaddress.ip_address(addr)
    except ValueError:
        return False

    for entry in trusted:
        try:
            if "/" in entry:
                if ip in ipaddress.ip_network(entry, strict=False):
                    return True
            else:
                if ip == ipaddress.ip_address(entry):
                    return True
        except ValueError:
            logger.warning("Invalid trusted proxy entry: %s", entry)
    return False


def resolve_client_ip(request: Request) -> str:
    """Determine the real client IP.

    When the direct peer is a trusted proxy, in order:
      1. the edge proxy header (``EDGE_IP_HEADER``, e.g. CF-Connecting-IP),
      2. the first address in X-Forwarded-For,
      3. the socket address.
    Requests from untrusted peers always resolve to the socket address.
    """
    direct_ip = request.client.host if request.client else "unknown"
    trusted = settings.trusted_proxies_list

    if not trusted or not _is_trusted_proxy(direct_ip, trusted):
        return direct_ip

    if settings.EDGE_IP_HEADER:
        edge_ip = request.headers.get(settings.EDGE_IP_HEADER.lower())
        if edge_ip and edge_ip.strip():
            return edge_ip.strip()

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return direct_ip


def resolve_identity(request: Request) -> Identity:
    """Build the rate-limit identity for a request.

    A valid session token supplies the owner id. API keys are not looked up
    before admission.
    """
    token = bearer_token(request.headers.get("authorization"))
    owner_id = None
    if token and not token.startswith(f"{settings.API_KEY_PREFIX}_"):
        owner_id = owner_id_from_session(token)
    return Identity(address=resolve_client_ip(request), owner_id=owner_id)
