"""
FastAPI dependencies. Injected into route handlers.
"""

from fastapi import Depends, HTTPException, Request, status

from ..runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """The Runtime started by the app lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Runtime not started",
        )
    return runtime


def ensure_user_allowed(runtime: Runtime, user_id: str) -> None:
    if not runtime.settings.is_user_allowed(user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User {user_id} is not allowed",
        )


async def require_user(
    user_id: str,
    runtime: Runtime = Depends(get_runtime),
) -> str:
    """Path-parameter user id, checked against ALLOWED_USERS."""
    ensure_user_allowed(runtime, user_id)
    return user_id
