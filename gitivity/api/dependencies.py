import hmac

from fastapi import Header, HTTPException, Request, status

from gitivity.core.config import settings
from gitivity.services.runtime import GitivityRuntime


def get_runtime(request: Request) -> GitivityRuntime:
    return request.app.state.runtime


def require_debug_access(x_debug_key: str | None = Header(None)) -> None:
    """Debug routes are open outside production; there they need the debug key."""
    if settings.environment != "production":
        return
    if not settings.debug_key or not hmac.compare_digest(x_debug_key or "", settings.debug_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
