"""
Staff feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.staff.models import Staff, StaffRole
from app.features.staff.schemas import StaffResponse
from app.features.staff.dependencies import get_current_user, get_current_manager
from app.features.permissions.steward import VoucherSteward


router = APIRouter(tags=["staff"])


@router.get("/me", response_model=StaffResponse)
async def get_current_staff_profile(
    staff: Annotated[Staff, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get the authenticated staff member's profile."""
    holder_id = await VoucherSteward(db).get_current_holder()
    response = StaffResponse.model_validate(staff)
    response.is_voucher_manager = holder_id == staff.id
    return response


@router.get("/", response_model=list[StaffResponse])
async def list_manager_staff(
    manager: Annotated[Staff, Depends(get_current_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50,
    include_inactive: bool = False
):
    """List manager staff accounts, flagging the current voucher manager (manager only)."""
    query = select(Staff).where(Staff.role == StaffRole.MANAGER_STAFF)
    if not include_inactive:
        query = query.where(Staff.is_active == True)  # noqa: E712
    query = query.order_by(Staff.id).offset(skip).limit(limit)

    result = await db.execute(query)
    holder_id = await VoucherSteward(db).get_current_holder()

    responses = []
    for staff in result.scalars().all():
        response = StaffResponse.model_validate(staff)
        response.is_voucher_manager = holder_id == staff.id
        responses.append(response)
    return responses


@router.get("/{staff_id}", response_model=StaffResponse)
async def get_staff(
    staff_id: int,
    manager: Annotated[Staff, Depends(get_current_manager)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a staff account by ID (manager only)."""
    staff = await db.get(Staff, staff_id)

    if staff is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Staff not found"
        )

    holder_id = await VoucherSteward(db).get_current_holder()
    response = StaffResponse.model_validate(staff)
    response.is_voucher_manager = holder_id == staff.id
    return response
