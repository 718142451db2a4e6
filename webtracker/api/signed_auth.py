"""
Dual Authentication Dependencies

Every protected route resolves its caller through the Authenticator stored on
app.state. Two credential types are accepted on the same routes:

1. Authorization: Bearer <token> -> user (checked first)
2. X-Device-Id / X-Ts / X-Nonce / X-Sig -> Ed25519-signed device request

The signature covers the raw request bytes, so the body is read here before
any JSON parsing happens.
"""

import logging
import uuid

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from webtracker.core.auth import (
    AuthRequest,
    Authenticator,
    DevicePrincipal,
    Principal,
    Rejected,
    UserPrincipal,
)
from webtracker.core.database import User, get_db

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying after storage_unavailable
RETRY_AFTER_SECONDS = 1


def request_target(request: Request) -> str:
    """
    Path plus query string exactly as the client sent them.

    Uses the raw (still percent-encoded) path from the ASGI scope so the
    canonical message matches what the device signed.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    if query:
        return f"{path}?{query}"
    return path


def rejection_to_http(rejection: Rejected) -> HTTPException:
    """Render a rejection; the body carries the code and a generic message only."""
    headers = None
    if rejection.code.retryable:
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}
    elif rejection.http_status == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(
        status_code=rejection.http_status,
        detail={"error": rejection.code.value, "message": rejection.message},
        headers=headers,
    )


def get_authenticator(request: Request) -> Authenticator:
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "storage_unavailable", "message": "Authentication not initialized"},
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    return authenticator


async def get_principal(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
) -> Principal:
    """
    Authenticate the request as a user or a device.

    This is the main dependency for protected routes.

    Example:
        @router.get("/api/trusted")
        async def list_trusted(principal: Principal = Depends(get_principal)):
            ...
    """
    body = await request.body()
    auth_request = AuthRequest.build(
        method=request.method,
        path=request_target(request),
        headers=request.headers,
        body=body,
    )

    result = await authenticator.authenticate(auth_request)
    if isinstance(result, Rejected):
        raise rejection_to_http(result)

    request.state.principal = result.principal
    return result.principal


async def require_user(principal: Principal = Depends(get_principal)) -> UserPrincipal:
    """Dependency for routes only a logged-in user may call."""
    if not isinstance(principal, UserPrincipal):
        logger.warning(f"Device {principal.device_id} called a user-only route")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User credentials required",
        )
    return principal


async def require_device(principal: Principal = Depends(get_principal)) -> DevicePrincipal:
    """Dependency for routes only a signed device may call."""
    if not isinstance(principal, DevicePrincipal):
        logger.warning(f"User {principal.user_id} called a device-only route")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Device signature required",
        )
    return principal


def find_user(db: Session, principal: UserPrincipal):
    """Look up the internal user row for a bearer-authenticated principal."""
    return db.query(User).filter(User.auth_uid == principal.user_id).first()


async def get_owner_id(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> uuid.UUID:
    """
    Internal id of the user that owns the caller's data.

    Devices carry their owner directly; users are mapped through auth_uid and
    must have registered first.
    """
    if isinstance(principal, DevicePrincipal):
        return uuid.UUID(principal.user_id)

    user = find_user(db, principal)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not registered",
        )
    return user.id
