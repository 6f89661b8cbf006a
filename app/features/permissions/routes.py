"""
Permission delegation API routes.

Mounted under /manager/staff. Managers delegate per-partner permissions to the
manager staff accounts they supervise and assign the exclusive voucher manager
category.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import limiter
from app.features.staff.dependencies import get_current_user, get_current_manager, get_manager_staff_by_id
from app.features.staff.models import Staff
from app.features.permissions.catalog import list_permission_groups
from app.features.permissions.dependencies import create_audit_log, get_delegation_target
from app.features.permissions.errors import PartialFailure, TransferConflict
from app.features.permissions.matrix import PermissionMatrixService
from app.features.permissions.models import AuditLog
from app.features.permissions.steward import VoucherSteward
from app.features.permissions.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    AvailablePermissionsResponse,
    BulkOperationReport,
    CurrentVoucherManager,
    GrantVoucherPermissionsRequest,
    PermissionChangeRequest,
    StaffPermissionsResponse,
    VoucherAssignmentResponse,
    VoucherRevocationResponse,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

PARTIAL_FAILURE_RESPONSE = {207: {"description": "Applied to some partners only; body carries the report"}}


# ============================================================================
# Catalog
# ============================================================================

@router.get("/permissions/available", response_model=AvailablePermissionsResponse)
async def get_available_permissions(
    staff: Annotated[Staff, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    include_exclusive: bool = False
):
    """List the permission catalog grouped by resource type."""
    groups = await list_permission_groups(db, include_exclusive=include_exclusive)
    return AvailablePermissionsResponse(permission_groups=groups)


# ============================================================================
# Voucher Manager
# ============================================================================

@router.get("/voucher-permission/current", response_model=Optional[CurrentVoucherManager])
async def get_current_voucher_manager(
    manager: Annotated[Staff, Depends(get_current_manager)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Return the staff member holding the voucher category, or null."""
    holder = await VoucherSteward(db).get_current_holder_staff()
    if holder is None:
        return None
    return CurrentVoucherManager(manager_staff_id=holder.id, manager_staff_name=holder.full_name)


# ============================================================================
# Audit Logs
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    manager: Annotated[Staff, Depends(get_current_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50,
    actor_id: Optional[int] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    partner_id: Optional[int] = None
):
    """List delegation audit logs with optional filtering."""
    stmt = select(AuditLog)

    if actor_id is not None:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)
    if partner_id is not None:
        stmt = stmt.where(AuditLog.partner_id == partner_id)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    entries = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )


# ============================================================================
# Staff Permissions
# ============================================================================

@router.get("/{staff_id}/permissions", response_model=StaffPermissionsResponse)
async def get_staff_permissions(
    manager: Annotated[Staff, Depends(get_current_manager)],
    target: Annotated[Staff, Depends(get_manager_staff_by_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    partner_ids: Annotated[Optional[List[int]], Query()] = None
):
    """
    Get a manager staff member's grants on the partners they manage.

    partner_ids narrows the view; unmanaged partners are left out.
    """
    view = await PermissionMatrixService(db).get_grants(target.id, partner_ids)
    return StaffPermissionsResponse(
        manager_staff_id=target.id,
        manager_staff_name=target.full_name,
        partner_permissions=view,
    )


@router.post("/{staff_id}/permissions", response_model=BulkOperationReport, responses=PARTIAL_FAILURE_RESPONSE)
@limiter.limit(config.PERMISSION_WRITE_RATE_LIMIT)
async def grant_permissions(
    request: Request,
    body: PermissionChangeRequest,
    manager: Annotated[Staff, Depends(get_current_manager)],
    target: Annotated[Staff, Depends(get_delegation_target)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Grant every code on every listed partner (manager only)."""
    actor_id, target_id = manager.id, target.id
    report = await PermissionMatrixService(db).grant(
        target_id, body.partner_ids, body.permission_codes, actor_id=actor_id
    )
    return await _finish_bulk(db, request, "grant_permissions", actor_id, target_id, body, report)


@router.delete("/{staff_id}/permissions", response_model=BulkOperationReport, responses=PARTIAL_FAILURE_RESPONSE)
@limiter.limit(config.PERMISSION_WRITE_RATE_LIMIT)
async def revoke_permissions(
    request: Request,
    body: PermissionChangeRequest,
    manager: Annotated[Staff, Depends(get_current_manager)],
    target: Annotated[Staff, Depends(get_delegation_target)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Revoke every code on every listed partner (manager only)."""
    actor_id, target_id = manager.id, target.id
    report = await PermissionMatrixService(db).revoke(
        target_id, body.partner_ids, body.permission_codes, actor_id=actor_id
    )
    return await _finish_bulk(db, request, "revoke_permissions", actor_id, target_id, body, report)


async def _finish_bulk(
    db: AsyncSession,
    request: Request,
    action: str,
    actor_id: int,
    target_id: int,
    body: PermissionChangeRequest,
    report: BulkOperationReport
) -> BulkOperationReport:
    if report.affected_count or not report.success:
        await create_audit_log(
            db,
            actor_id=actor_id,
            action=action,
            resource_type="staff",
            resource_id=target_id,
            details={
                "partner_ids": body.partner_ids,
                "permission_codes": body.permission_codes,
                "affected_count": report.affected_count,
                "failed_partner_ids": report.failed_partner_ids,
            },
            request=request,
        )
    if not report.success:
        raise PartialFailure(report)
    return report


# ============================================================================
# Voucher Permissions
# ============================================================================

@router.post("/{staff_id}/voucher-permissions", response_model=VoucherAssignmentResponse)
@limiter.limit(config.PERMISSION_WRITE_RATE_LIMIT)
async def grant_voucher_permissions(
    request: Request,
    manager: Annotated[Staff, Depends(get_current_manager)],
    target: Annotated[Staff, Depends(get_delegation_target)],
    db: Annotated[AsyncSession, Depends(get_db)],
    body: Optional[GrantVoucherPermissionsRequest] = None
):
    """
    Make a manager staff member the voucher manager.

    If someone else holds the category the request fails with 409
    transfer_confirmation_required unless confirm_transfer is set.
    """
    actor_id, target_id, target_name = manager.id, target.id, target.full_name
    confirm_transfer = body.confirm_transfer if body is not None else False

    try:
        assignment = await VoucherSteward(db).assign(
            target_id, confirm_transfer=confirm_transfer, actor_id=actor_id
        )
    except TransferConflict as exc:
        await create_audit_log(
            db,
            actor_id=actor_id,
            action="voucher_transfer_interrupted",
            resource_type="voucher_manager",
            resource_id=target_id,
            details={"previous_manager_staff_id": exc.previous_holder_id},
            request=request,
        )
        raise

    if not assignment.changed:
        return VoucherAssignmentResponse(
            success=True,
            message=f"{target_name} already manages vouchers",
            manager_staff_id=target_id,
        )

    await create_audit_log(
        db,
        actor_id=actor_id,
        action="transfer_voucher_manager" if assignment.transferred else "assign_voucher_manager",
        resource_type="voucher_manager",
        resource_id=target_id,
        details={
            "previous_manager_staff_id": assignment.previous_holder_id,
            "affected_count": assignment.affected_count,
        },
        request=request,
    )
    return VoucherAssignmentResponse(
        success=True,
        message=f"{target_name} now manages vouchers",
        manager_staff_id=target_id,
        previous_manager_staff_id=assignment.previous_holder_id,
        transferred=assignment.transferred,
        affected_count=assignment.affected_count,
    )


@router.delete("/{staff_id}/voucher-permissions", response_model=VoucherRevocationResponse)
@limiter.limit(config.PERMISSION_WRITE_RATE_LIMIT)
async def revoke_voucher_permissions(
    request: Request,
    manager: Annotated[Staff, Depends(get_current_manager)],
    target: Annotated[Staff, Depends(get_delegation_target)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Remove the voucher category from a staff member; no-op if they do not hold it."""
    actor_id, target_id, target_name = manager.id, target.id, target.full_name
    removed = await VoucherSteward(db).revoke(target_id)

    if removed is None:
        return VoucherRevocationResponse(
            success=True,
            message=f"{target_name} does not manage vouchers",
        )

    await create_audit_log(
        db,
        actor_id=actor_id,
        action="revoke_voucher_manager",
        resource_type="voucher_manager",
        resource_id=target_id,
        details={"affected_count": removed},
        request=request,
    )
    return VoucherRevocationResponse(
        success=True,
        message=f"Voucher permissions revoked from {target_name}",
        affected_count=removed,
    )
