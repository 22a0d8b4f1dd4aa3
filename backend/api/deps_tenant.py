"""
Tenant authentication dependencies.

The dashboard talks to this service with the access token issued by the main
ChatGrow API.  The tenant is read straight from the ``business_id`` claim, so
authenticating a request costs no database round trip.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from core.security.tokens import TokenService
from infrastructure.config.settings import settings

token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
)


@dataclass(frozen=True)
class TenantContext:
    """Authenticated caller and the business they act for."""

    user_id: str
    business_id: str
    role: str | None = None


def _extract_token(request: Request, authorization: str | None) -> str | None:
    # Try Authorization header first (API clients, tests)
    token = None
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        token = parts[1] if len(parts) > 1 and parts[1] else None

    # Fall back to HttpOnly cookie
    if not token:
        token = request.cookies.get("access_token")
    return token


async def get_current_tenant(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> TenantContext:
    """
    Dependency resolving the caller's tenant from the access token.

    Raises:
        HTTPException: 401 without a valid access token, 403 when the token
            carries no business
    """
    token = _extract_token(request, authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = token_service.verify_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.business_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No business associated with this account",
        )

    # Make the tenant available to request logging
    request.state.business_id = payload.business_id

    return TenantContext(
        user_id=payload.sub,
        business_id=payload.business_id,
        role=payload.role,
    )
