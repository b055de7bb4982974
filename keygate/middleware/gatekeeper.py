"""
Request admission middleware.

For every request, in order:
  1. resolve the caller's identity (session owner, else client address),
  2. count the request against its route class and reject with 429 when the
     class ceiling is exceeded,
  3. publish a typed RequestContext for downstream dependencies.

Credential checks run later, in route dependencies, so rate limiting also
throttles invalid-key guessing. If the counter store is unavailable the
request is denied with 503 (fail closed).
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from keygate.context import RequestContext, reset_request_context, set_request_context
from keygate.dependencies import resolve_identity
from keygate.errors import InfrastructureFailure, RateLimited, error_response
from keygate.services.counter_store import CounterStoreNotInitialized
from keygate.services.rate_limit import get_rate_limiter


class GatekeeperMiddleware(BaseHTTPMiddleware):
    """Rate-limit admission for every route class."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        identity = resolve_identity(request)

        try:
            limiter = get_rate_limiter()
            route_class = limiter.route_class_for(path)
            decision = await limiter.check(identity, route_class, path)
        except InfrastructureFailure as exc:
            return error_response(exc)
        except CounterStoreNotInitialized:
            return error_response(InfrastructureFailure())

        if not decision.allowed:
            return error_response(
                RateLimited(decision.retry_after, route_class.message),
                headers=decision.headers(),
            )

        token = set_request_context(RequestContext(identity=identity, route_class=route_class.name))
        try:
            response = await call_next(request)
        finally:
            reset_request_context(token)

        for header, value in decision.headers().items():
            response.headers[header] = value
        return response
