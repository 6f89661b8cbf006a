"""
Staff-partner permission matrix.

Persisted state of which manager staff member holds which permission on which
partner. Bulk grant and revoke operate on the Cartesian product of partners and
permission codes; each partner is written and committed on its own so a failure
on one partner is reported without blocking the others.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set
from sqlalchemy import select, delete, insert, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.partners.models import Partner, staff_partners
from app.features.permissions.catalog import validate_delegable_codes
from app.features.permissions.models import PermissionDefinition, staff_partner_permissions
from app.features.permissions.schemas import (
    BulkOperationReport,
    GrantedPermission,
    PartnerOperationResult,
    PartnerPermissions,
)
from app.utils import get_logger


log = get_logger(__name__)


class PermissionMatrixService:
    """Reads and writes Grants for manager staff."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def managed_partner_ids(self, staff_id: int) -> Set[int]:
        """Partners the staff member has an assignment relationship with."""
        result = await self.db.execute(
            select(staff_partners.c.partner_id).where(staff_partners.c.staff_id == staff_id)
        )
        return set(result.scalars().all())

    async def get_grants(
        self,
        staff_id: int,
        partner_ids: Optional[Iterable[int]] = None
    ) -> List[PartnerPermissions]:
        """
        Grants of staff_id grouped by partner.

        Partners the staff member does not manage are omitted rather than
        returned empty. partner_ids=None returns every managed partner.
        """
        stmt = (
            select(Partner)
            .join(staff_partners, staff_partners.c.partner_id == Partner.id)
            .where(staff_partners.c.staff_id == staff_id)
            .order_by(Partner.id)
        )
        if partner_ids is not None:
            partner_ids = set(partner_ids)
            if not partner_ids:
                return []
            stmt = stmt.where(Partner.id.in_(partner_ids))

        partners = (await self.db.execute(stmt)).scalars().all()
        if not partners:
            return []

        grants_stmt = (
            select(
                staff_partner_permissions.c.partner_id,
                staff_partner_permissions.c.granted_at,
                staff_partner_permissions.c.granted_by_id,
                PermissionDefinition,
            )
            .join(PermissionDefinition, PermissionDefinition.code == staff_partner_permissions.c.permission_code)
            .where(
                and_(
                    staff_partner_permissions.c.staff_id == staff_id,
                    staff_partner_permissions.c.partner_id.in_([p.id for p in partners]),
                )
            )
            .order_by(PermissionDefinition.id)
        )
        granted: Dict[int, List[GrantedPermission]] = {p.id: [] for p in partners}
        for row in (await self.db.execute(grants_stmt)).all():
            definition = row.PermissionDefinition
            granted[row.partner_id].append(GrantedPermission(
                permission_id=definition.id,
                permission_code=definition.code,
                permission_name=definition.name,
                description=definition.description,
                resource_type=definition.resource_type,
                action_type=definition.action_type,
                is_active=definition.is_active,
                granted_at=row.granted_at,
                granted_by_id=row.granted_by_id,
            ))

        log.debug(f"Loaded grants of staff {staff_id} on {len(partners)} partners")
        return [
            PartnerPermissions(
                partner_id=partner.id,
                partner_name=partner.name,
                tax_code=partner.tax_code,
                address=partner.address,
                permissions=granted[partner.id],
            )
            for partner in partners
        ]

    async def held_codes(self, staff_id: int, partner_id: int) -> Set[str]:
        result = await self.db.execute(
            select(staff_partner_permissions.c.permission_code).where(
                and_(
                    staff_partner_permissions.c.staff_id == staff_id,
                    staff_partner_permissions.c.partner_id == partner_id,
                )
            )
        )
        return set(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def grant(
        self,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str],
        actor_id: Optional[int] = None
    ) -> BulkOperationReport:
        """Grant every code on every partner; already-held pairs are left untouched."""
        return await self._apply("grant", staff_id, partner_ids, permission_codes, actor_id)

    async def revoke(
        self,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str],
        actor_id: Optional[int] = None
    ) -> BulkOperationReport:
        """Revoke every code on every partner; unheld pairs are ignored."""
        return await self._apply("revoke", staff_id, partner_ids, permission_codes, actor_id)

    async def drop_partner_grants(self, staff_id: int, partner_id: int) -> int:
        """Remove all of staff_id's grants on partner_id (used when the assignment ends)."""
        result = await self.db.execute(
            delete(staff_partner_permissions).where(
                and_(
                    staff_partner_permissions.c.staff_id == staff_id,
                    staff_partner_permissions.c.partner_id == partner_id,
                )
            )
        )
        return result.rowcount or 0

    async def _apply(
        self,
        operation: str,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str],
        actor_id: Optional[int]
    ) -> BulkOperationReport:
        partner_ids = sorted(set(partner_ids))
        codes = list(dict.fromkeys(permission_codes))

        if not partner_ids or not codes:
            return BulkOperationReport(success=True, message="Nothing to apply", affected_count=0)

        await validate_delegable_codes(self.db, codes)
        managed = await self.managed_partner_ids(staff_id)

        results: List[PartnerOperationResult] = []
        for partner_id in partner_ids:
            if partner_id not in managed:
                log.warning(f"Skipping {operation} for staff {staff_id}: partner {partner_id} is not managed by them")
                results.append(PartnerOperationResult(
                    partner_id=partner_id,
                    success=False,
                    permission_codes=codes,
                    error=f"Staff {staff_id} is not assigned to partner {partner_id}",
                ))
                continue

            try:
                if operation == "grant":
                    affected = await self._grant_on_partner(staff_id, partner_id, codes, actor_id)
                else:
                    affected = await self._revoke_on_partner(staff_id, partner_id, codes)
                await self.db.commit()
            except SQLAlchemyError as exc:
                await self.db.rollback()
                log.warning(f"Failed to {operation} {codes} for staff {staff_id} on partner {partner_id}: {exc}")
                results.append(PartnerOperationResult(
                    partner_id=partner_id,
                    success=False,
                    permission_codes=codes,
                    error=f"Storage error ({exc.__class__.__name__})",
                ))
                continue

            results.append(PartnerOperationResult(
                partner_id=partner_id,
                success=True,
                affected_count=affected,
                permission_codes=codes,
            ))

        affected_total = sum(r.affected_count for r in results)
        failed = [r.partner_id for r in results if not r.success]
        if failed:
            message = f"{operation.capitalize()} applied to {len(results) - len(failed)} of {len(results)} partners"
        else:
            message = f"{operation.capitalize()} applied to {len(results)} partners"

        log.info(
            f"{operation} staff={staff_id} partners={partner_ids} codes={codes} "
            f"affected={affected_total} failed={failed}"
        )
        return BulkOperationReport(
            success=not failed,
            message=message,
            affected_count=affected_total,
            results=results,
        )

    async def _grant_on_partner(
        self,
        staff_id: int,
        partner_id: int,
        codes: List[str],
        actor_id: Optional[int]
    ) -> int:
        held = await self.held_codes(staff_id, partner_id)
        missing = [code for code in codes if code not in held]
        if not missing:
            return 0
        now = datetime.now()
        await self.db.execute(
            insert(staff_partner_permissions),
            [
                {
                    "staff_id": staff_id,
                    "partner_id": partner_id,
                    "permission_code": code,
                    "granted_at": now,
                    "granted_by_id": actor_id,
                }
                for code in missing
            ],
        )
        return len(missing)

    async def _revoke_on_partner(self, staff_id: int, partner_id: int, codes: List[str]) -> int:
        result = await self.db.execute(
            delete(staff_partner_permissions).where(
                and_(
                    staff_partner_permissions.c.staff_id == staff_id,
                    staff_partner_permissions.c.partner_id == partner_id,
                    staff_partner_permissions.c.permission_code.in_(codes),
                )
            )
        )
        return result.rowcount or 0
