"""
Route dependencies and audit helpers for permission delegation.

Implements:
- Resolution of the staff member whose permissions are being changed
- Audit logging helpers
"""
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.staff.dependencies import get_current_manager, get_manager_staff_by_id
from app.features.staff.models import Staff
from app.features.permissions.errors import NotAuthorizedError
from app.features.permissions.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Target Resolution
# ============================================================================

async def get_delegation_target(
    staff_id: int,
    manager: Annotated[Staff, Depends(get_current_manager)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Staff:
    """
    Resolve the manager staff account a manager is about to modify.

    Raises:
        HTTPException: 404/400 from get_manager_staff_by_id
        NotAuthorizedError: the manager is targeting their own account
    """
    if staff_id == manager.id:
        raise NotAuthorizedError("You cannot change your own permissions", staff_id=staff_id)
    return await get_manager_staff_by_id(staff_id, db)


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    actor_id: Optional[int],
    action: str,
    resource_type: str,
    resource_id: Optional[Any] = None,
    partner_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    commit: bool = True
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        actor_id: Staff member performing the action
        action: Action performed (e.g., "grant_permissions", "transfer_voucher_manager")
        resource_type: Type of resource (e.g., "staff", "partner")
        resource_id: ID of the resource
        partner_id: Partner context
        details: Additional details
        request: Incoming request, for client IP and user agent
        commit: Commit immediately; pass False to join the caller's transaction
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        partner_id=partner_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    db.add(audit_log)
    if commit:
        await db.commit()
    else:
        await db.flush()

    log.info(
        f"Audit: actor={actor_id} action={action} resource={resource_type}:{resource_id} partner={partner_id}"
    )

    return audit_log
