from typing import Annotated
import uuid
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stride_billing.database import get_db


logger = logging.getLogger(__name__)


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header(alias="X-Tenant-ID")] = None,
) -> uuid.UUID:
    """
    Tenant for the request, from the X-Tenant-ID header.

    Authentication happens upstream; this only scopes the request.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required",
        )
    try:
        return uuid.UUID(x_tenant_id)
    except ValueError:
        logger.warning(f"Invalid tenant id in header: {x_tenant_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID must be a UUID",
        )


DB = Annotated[AsyncSession, Depends(get_db)]
TenantID = Annotated[uuid.UUID, Depends(get_tenant_id)]
