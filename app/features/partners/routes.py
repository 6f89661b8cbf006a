"""
Partner routes: listing and staff assignment.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, delete, insert, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import limiter
from app.features.partners.dependencies import get_partner_by_id
from app.features.partners.models import Partner, staff_partners
from app.features.partners.schemas import AssignPartnerToStaff, AssignmentResponse, PartnerResponse
from app.features.permissions.dependencies import create_audit_log
from app.features.permissions.matrix import PermissionMatrixService
from app.features.staff.dependencies import get_current_manager, get_manager_staff_by_id
from app.features.staff.models import Staff
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["partners"])


@router.get("/", response_model=list[PartnerResponse])
async def list_partners(
    manager: Annotated[Staff, Depends(get_current_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
    include_inactive: bool = False
):
    """List partners with their assigned manager staff (manager only)."""
    query = select(Partner)
    if not include_inactive:
        query = query.where(Partner.is_active == True)  # noqa: E712
    query = query.order_by(Partner.id).offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{partner_id}", response_model=PartnerResponse)
async def get_partner(
    manager: Annotated[Staff, Depends(get_current_manager)],
    partner: Annotated[Partner, Depends(get_partner_by_id)]
):
    """Get a partner by ID (manager only)."""
    return partner


@router.put("/{partner_id}/assign-staff", response_model=AssignmentResponse)
@limiter.limit(config.PERMISSION_WRITE_RATE_LIMIT)
async def assign_partner_to_staff(
    request: Request,
    assignment: AssignPartnerToStaff,
    manager: Annotated[Staff, Depends(get_current_manager)],
    partner: Annotated[Partner, Depends(get_partner_by_id)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Put a partner under a manager staff member's supervision.

    Assigning an already assigned pair is a no-op. Permissions on the partner
    can be delegated only after the assignment exists.
    """
    actor_id, partner_id = manager.id, partner.id
    staff = await get_manager_staff_by_id(assignment.manager_staff_id, db)
    staff_id = staff.id

    existing = await db.execute(
        select(staff_partners.c.staff_id).where(
            and_(
                staff_partners.c.staff_id == staff_id,
                staff_partners.c.partner_id == partner_id,
            )
        )
    )
    if existing.scalar_one_or_none() is not None:
        return AssignmentResponse(
            message="Partner is already assigned to this manager staff",
            partner_id=partner_id,
            manager_staff_id=staff_id,
        )

    await db.execute(
        insert(staff_partners).values(
            staff_id=staff_id,
            partner_id=partner_id,
            assigned_by_id=actor_id,
        )
    )
    await create_audit_log(
        db,
        actor_id=actor_id,
        action="assign_partner",
        resource_type="staff",
        resource_id=staff_id,
        partner_id=partner_id,
        request=request,
    )
    log.info(f"Partner {partner_id} assigned to staff {staff_id} by {actor_id}")

    return AssignmentResponse(
        message="Partner assigned to manager staff",
        partner_id=partner_id,
        manager_staff_id=staff_id,
    )


@router.delete("/{partner_id}/assign-staff/{staff_id}", response_model=AssignmentResponse)
@limiter.limit(config.PERMISSION_WRITE_RATE_LIMIT)
async def unassign_partner_from_staff(
    request: Request,
    staff_id: int,
    manager: Annotated[Staff, Depends(get_current_manager)],
    partner: Annotated[Partner, Depends(get_partner_by_id)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    End a manager staff member's supervision of a partner.

    The staff member's grants on that partner are removed with the assignment.
    """
    actor_id, partner_id = manager.id, partner.id

    result = await db.execute(
        delete(staff_partners).where(
            and_(
                staff_partners.c.staff_id == staff_id,
                staff_partners.c.partner_id == partner_id,
            )
        )
    )
    if not result.rowcount:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Partner is not assigned to this staff member"
        )

    dropped = await PermissionMatrixService(db).drop_partner_grants(staff_id, partner_id)
    await create_audit_log(
        db,
        actor_id=actor_id,
        action="unassign_partner",
        resource_type="staff",
        resource_id=staff_id,
        partner_id=partner_id,
        details={"dropped_permissions": dropped},
        request=request,
    )
    log.info(f"Partner {partner_id} unassigned from staff {staff_id}; {dropped} grants dropped")

    return AssignmentResponse(
        message="Partner unassigned from manager staff",
        partner_id=partner_id,
        manager_staff_id=staff_id,
    )
