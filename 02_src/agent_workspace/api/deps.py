"""Request dependencies shared by the routers."""

import hmac

from fastapi import Header, HTTPException

from ..app import Application

SECRET_HEADER = "X-Bridge-Secret"


def caller_dependency(app: Application):
    """Resolve the caller from ``X-User-Id``, falling back to the default user."""

    async def caller(x_user_id: str | None = Header(None)) -> str:
        return x_user_id or app.settings.default_user_id

    return caller


def bridge_secret_dependency(app: Application):
    """Reject bridge calls whose ``X-Bridge-Secret`` does not match, when one is configured."""

    async def require_secret(x_bridge_secret: str | None = Header(None)) -> None:
        expected = app.settings.bridge_secret
        if not expected:
            return
        supplied = (x_bridge_secret or "").encode()
        if not hmac.compare_digest(supplied, expected.encode()):
            raise HTTPException(status_code=401, detail="Invalid bridge secret")

    return require_secret
