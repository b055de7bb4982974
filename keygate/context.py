"""Request-scoped context threaded through the admission pipeline.

The gate middleware resolves an :class:`Identity` and stores a
:class:`RequestContext` in a context variable before handing the request on;
route dependencies read it back with :func:`get_request_context`. Nothing is
attached to ``request.state``.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Identity:
    """The principal a rate-limit or credential check is evaluated against."""

    address: str
    owner_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.owner_id is not None

    def counter_key(self, address_only: bool = False) -> str:
        """Key used for rate-limit counters.

        Owner-keyed classes fall back to the address when no owner is known.
        """
        if self.owner_id and not address_only:
            return f"owner:{self.owner_id}"
        return f"ip:{self.address}"


@dataclass(frozen=True)
class KeyOwner:
    id: str
    email: str | None
    username: str | None


@dataclass(frozen=True)
class AuthenticatedKey:
    """Result of a successful API key validation."""

    key_id: str
    key_name: str
    key_prefix: str
    owner: KeyOwner


@dataclass(frozen=True)
class RequestContext:
    identity: Identity
    route_class: str | None = None
    api_key: AuthenticatedKey | None = None


_request_context: ContextVar[RequestContext | None] = ContextVar(
    "keygate_request_context", default=None
)


def set_request_context(ctx: RequestContext) -> Token:
    return _request_context.set(ctx)


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def get_request_context() -> RequestContext | None:
    return _request_context.get()


def bind_api_key(api_key: AuthenticatedKey) -> RequestContext | None:
    """Record the validated key on the current context, if one is active."""
    ctx = _request_context.get()
    if ctx is None:
        return None
    ctx = replace(ctx, api_key=api_key)
    _request_context.set(ctx)
    return ctx
