"""
FastAPI dependencies for authentication and authorization.
"""
from typing import Annotated
from datetime import datetime
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.staff.models import Staff, StaffRole
from app.features.staff.auth import verify_jwt_token, get_appwrite_account
from app.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Staff:
    """
    Get the current authenticated staff account from the JWT.
    
    This dependency:
    1. Extracts JWT from Authorization header
    2. Verifies JWT with Appwrite
    3. Looks up the staff account, provisioning a manager staff account on first login
    4. Updates last_login_at timestamp
    """
    payload = verify_jwt_token(credentials.credentials)
    appwrite_id = payload.get("userId")
    
    if not appwrite_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    
    result = await db.execute(
        select(Staff).where(Staff.appwrite_id == appwrite_id)
    )
    staff = result.scalar_one_or_none()
    
    if staff is None:
        account = await get_appwrite_account(appwrite_id)
        # New accounts never start with manager authority
        staff = Staff(
            appwrite_id=appwrite_id,
            email=account.get("email", ""),
            full_name=account.get("name", "Unknown"),
            role=StaffRole.MANAGER_STAFF,
            last_login_at=datetime.utcnow(),
        )
        db.add(staff)
        log.info("Provisioned staff account for %s", staff.email)
    else:
        staff.last_login_at = datetime.utcnow()
    await db.commit()
    await db.refresh(staff)
    
    if not staff.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff account is deactivated",
        )
    
    return staff


async def get_current_manager(
    staff: Annotated[Staff, Depends(get_current_user)]
) -> Staff:
    """
    Require manager authority.
    
    Usage:
        @router.post("/{staff_id}/permissions")
        async def grant_permissions(
            staff_id: int,
            manager: Staff = Depends(get_current_manager)
        ):
            ...
    """
    if staff.role != StaffRole.MANAGER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager privileges required",
        )
    return staff


async def get_manager_staff_by_id(
    staff_id: int,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Staff:
    """
    Load an active manager staff account or fail.
    
    Raises:
        HTTPException: 404 if not found, 400 if the account is not an active manager staff account
    """
    staff = await db.get(Staff, staff_id)
    if staff is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Manager staff not found"
        )
    if staff.role != StaffRole.MANAGER_STAFF or not staff.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Target account is not an active manager staff account"
        )
    return staff


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
