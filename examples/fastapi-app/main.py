"""Demo FastAPI app showing Keygate SDK integration.

A downstream service that accepts ``Authorization: Bearer dpx_...`` from its
callers and asks keygate whether the key is good.

Run keygate first:
    uvicorn keygate.main:app --port 8000

Then start this example:
    cd examples/fastapi-app
    python -m venv .venv
    source .venv/bin/activate
    pip install -e ../..
    uvicorn main:app --port 9000
"""

from __future__ import annotations

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from keygate_client import (
    AsyncKeygateClient,
    AuthenticationError,
    KeygateClientError,
    KeyValidation,
    RateLimitError,
)
from pydantic import BaseModel

KEYGATE_URL = "http://localhost:8000"

app = FastAPI(title="Example App")

keygate = AsyncKeygateClient(KEYGATE_URL)


@app.on_event("shutdown")
async def close_keygate():
    await keygate.close()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def require_api_key(authorization: str = Header(...)) -> KeyValidation:
    """Validate the caller's API key against keygate."""
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    api_key = authorization.removeprefix("Bearer ")
    try:
        return await keygate.validate_key(api_key)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.detail)
    except RateLimitError as e:
        raise HTTPException(
            status_code=429,
            detail=e.detail,
            headers={"Retry-After": str(e.retry_after or 60)},
        )
    except KeygateClientError as e:
        raise HTTPException(status_code=502, detail=f"Key service error: {e.detail}")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class EchoBody(BaseModel):
    text: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/protected")
async def protected(key: KeyValidation = Depends(require_api_key)):
    """Example protected endpoint: requires a valid API key."""
    return {"message": f"Hello, {key.user.username or key.user.id}!", "key": key.key_name}


@app.post("/echo")
async def echo(body: EchoBody, key: KeyValidation = Depends(require_api_key)):
    return {"text": body.text, "owner_id": key.user.id}


@app.get("/keygate-health")
async def keygate_health():
    """Surface keygate's own health for this app's readiness probe."""
    try:
        status = await keygate.health()
    except KeygateClientError as e:
        return JSONResponse(status_code=503, content={"keygate": "unreachable", "detail": e.detail})
    return {"keygate": status.status}
