"""Per-route-class rate limiting on top of a shared counter store.

Every request path maps to one route class. A class fixes the window, the
ceiling, how the caller is keyed, and optionally a bypass predicate:

  ========  ===========  =====  ===================================
  class     window       max    keyed by
  ========  ===========  =====  ===================================
  auth      15 minutes   5      client address
  payment   1 minute     3      owner, else client address
  ai        1 minute     10     owner, else client address
  upload    1 hour       20     owner, else client address
  general   1 minute     100    owner, else client address
  ========  ===========  =====  ===================================

``general`` is skipped for the configured health-check paths. Window and
ceiling can be overridden per class through ``settings.RATE_LIMITS``.

Windows are fixed, so a burst straddling a window boundary can briefly see
up to twice the configured rate.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Callable

from keygate.config import RateLimitRule, settings
from keygate.context import Identity
from keygate.errors import InfrastructureFailure
from keygate.services.counter_store import CounterStore, get_counter_store

logger = logging.getLogger(__name__)


class Keying(str, enum.Enum):
    ADDRESS = "address"
    OWNER_OR_ADDRESS = "owner_or_address"


@dataclass(frozen=True)
class RouteClass:
    name: str
    window_seconds: int
    max_requests: int
    keying: Keying = Keying.OWNER_OR_ADDRESS
    message: str = "You have exceeded the rate limit. Please wait before trying again."
    bypass: Callable[[str], bool] | None = None

    def is_bypassed(self, path: str) -> bool:
        return self.bypass is not None and self.bypass(path)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    route_class: str
    limit: int
    remaining: int
    reset_in: int
    bypassed: bool = False

    @property
    def retry_after(self) -> int:
        return 0 if self.allowed else self.reset_in

    def headers(self) -> dict[str, str]:
        """Standard quota headers (draft RateLimit-* fields)."""
        if self.bypassed:
            return {}
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_in),
        }


def is_health_check(path: str) -> bool:
    return path in settings.health_check_paths_list


DEFAULT_ROUTE_CLASSES: dict[str, RouteClass] = {
    "auth": RouteClass(
        "auth",
        window_seconds=15 * 60,
        max_requests=5,
        keying=Keying.ADDRESS,
        message="Too many authentication attempts. Please try again later.",
    ),
    "payment": RouteClass(
        "payment",
        window_seconds=60,
        max_requests=3,
        message="Too many payment requests. Please wait before trying again.",
    ),
    "ai": RouteClass(
        "ai",
        window_seconds=60,
        max_requests=10,
        message="Too many AI requests. Please wait before trying again.",
    ),
    "upload": RouteClass(
        "upload",
        window_seconds=60 * 60,
        max_requests=20,
        message="Too many file uploads. Please wait before trying again.",
    ),
    "general": RouteClass(
        "general",
        window_seconds=60,
        max_requests=100,
        bypass=is_health_check,
    ),
}

# First match wins; anything unmatched is "general".
ROUTE_CLASS_PREFIXES: list[tuple[str, str]] = [
    ("/auth", "auth"),
    ("/api/auth", "auth"),
    ("/api/generate-checkout-session", "payment"),
    ("/api/generate-customer-portal-url", "payment"),
    ("/payments-webhook", "payment"),
    ("/api/generate-gpt-response", "ai"),
    ("/api/create-file-upload-url", "upload"),
    ("/api/add-file-to-db", "upload"),
]


def classify_path(path: str) -> str:
    for prefix, name in ROUTE_CLASS_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            return name
    return "general"


def build_route_classes(
    overrides: dict[str, RateLimitRule] | None = None,
) -> dict[str, RouteClass]:
    """Apply configured window/ceiling overrides to the built-in table."""
    classes = dict(DEFAULT_ROUTE_CLASSES)
    for name, rule in (overrides or {}).items():
        if name not in classes:
            logger.warning("Ignoring rate limit override for unknown route class: %s", name)
            continue
        classes[name] = replace(
            classes[name], window_seconds=rule.window_seconds, max_requests=rule.max_requests
        )
    return classes


class RateLimiter:
    """Admission decisions for route classes, backed by a :class:`CounterStore`."""

    def __init__(self, store: CounterStore, route_classes: dict[str, RouteClass] | None = None):
        self.store = store
        self.route_classes = route_classes or build_route_classes()

    def route_class_for(self, path: str) -> RouteClass:
        return self.route_classes[classify_path(path)]

    async def check(
        self, identity: Identity, route_class: RouteClass | str, path: str = ""
    ) -> RateLimitDecision:
        """Count this request against the caller's window and decide.

        Admits iff the post-increment count is within the class ceiling.

        Raises:
            InfrastructureFailure: If the counter store cannot be reached.
                Admission fails closed.
        """
        if isinstance(route_class, str):
            route_class = self.route_classes[route_class]

        if route_class.is_bypassed(path):
            return RateLimitDecision(
                allowed=True,
                route_class=route_class.name,
                limit=route_class.max_requests,
                remaining=route_class.max_requests,
                reset_in=0,
                bypassed=True,
            )

        address_only = route_class.keying is Keying.ADDRESS
        key = f"{route_class.name}:{identity.counter_key(address_only=address_only)}"

        try:
            result = await self.store.increment_and_get(key, route_class.window_seconds)
        except Exception:
            logger.exception("Rate limit store failed for route class %s", route_class.name)
            raise InfrastructureFailure()

        allowed = result.count <= route_class.max_requests
        decision = RateLimitDecision(
            allowed=allowed,
            route_class=route_class.name,
            limit=route_class.max_requests,
            remaining=max(0, route_class.max_requests - result.count),
            reset_in=result.reset_in,
        )
        if not allowed:
            logger.info(
                "Rate limited %s on %s (retry after %ss)", key, route_class.name, result.reset_in
            )
        return decision


_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, rebuilt if the counter store was swapped."""
    global _limiter
    store = get_counter_store()
    if _limiter is None or _limiter.store is not store:
        _limiter = RateLimiter(store, build_route_classes(settings.RATE_LIMITS))
    return _limiter
