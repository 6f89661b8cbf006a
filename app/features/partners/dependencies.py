"""
Partner-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.partners.models import Partner


async def get_partner_by_id(
    partner_id: int,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Partner:
    """
    Get partner by ID or raise 404.
    
    Raises:
        HTTPException: 404 if partner not found
    """
    partner = await db.get(Partner, partner_id)
    
    if partner is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Partner not found"
        )
    
    return partner
