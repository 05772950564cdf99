"""Request-scoped organization context.

Authentication itself happens upstream; requests carry the active
organization in the ``X-Organization-Id`` header.
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.models import Organization


async def get_current_organization_id(
    x_organization_id: str = Header(..., alias="X-Organization-Id"),
    db: AsyncSession = Depends(get_db),
) -> UUID:
    """Resolve the organization the request acts on."""
    try:
        organization_id = UUID(x_organization_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid organization ID format",
        )

    result = await db.execute(select(Organization.id).where(Organization.id == organization_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )

    return organization_id
