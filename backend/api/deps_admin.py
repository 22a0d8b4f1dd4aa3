"""
Admin authentication dependencies.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from api.deps_tenant import TenantContext, get_current_tenant

ADMIN_ROLES = ("admin", "super_admin")


async def get_current_admin_tenant(
    tenant: Annotated[TenantContext, Depends(get_current_tenant)],
) -> TenantContext:
    """
    Dependency to verify the caller is an admin.

    Requires the token to carry the ``admin`` or ``super_admin`` role.

    Args:
        tenant: The authenticated caller from get_current_tenant

    Returns:
        TenantContext: The caller if authorized

    Raises:
        HTTPException: 403 if the caller is not an admin
    """
    if tenant.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required. You do not have permission to access this resource.",
        )

    return tenant
