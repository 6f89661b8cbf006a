"""
Exclusive voucher permission steward.

Voucher management is a system-wide category that at most one manager staff
member may hold. The holder is recorded in the single VoucherManagerSlot row and
the category's codes are stored as partner-agnostic grants.

State machine:
    Unassigned --assign(B)--> AssignedTo(B)
    AssignedTo(A) --assign(A)--> AssignedTo(A)                 (no-op)
    AssignedTo(A) --assign(B, confirm_transfer)--> AssignedTo(B)
    AssignedTo(A) --revoke(A)--> Unassigned

A transfer revokes A and commits before B is granted, so two holders never
coexist. If granting B then fails the slot stays Unassigned and
TransferConflict is raised.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Set
from sqlalchemy import select, delete, insert, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.catalog import exclusive_permission_codes
from app.features.permissions.errors import TransferConfirmationRequired, TransferConflict
from app.features.permissions.models import VoucherManagerSlot, staff_global_permissions
from app.features.staff.models import Staff
from app.utils import get_logger


log = get_logger(__name__)

SLOT_ID = 1


@dataclass
class VoucherAssignment:
    """Result of VoucherSteward.assign."""
    holder_id: int
    previous_holder_id: Optional[int] = None
    changed: bool = True
    affected_count: int = 0

    @property
    def transferred(self) -> bool:
        return self.changed and self.previous_holder_id is not None


class VoucherSteward:
    """Assigns, transfers, and revokes the voucher manager category."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _slot(self, for_update: bool = False) -> Optional[VoucherManagerSlot]:
        stmt = select(VoucherManagerSlot).where(VoucherManagerSlot.id == SLOT_ID)
        if for_update:
            stmt = stmt.with_for_update()
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _locked_slot(self) -> VoucherManagerSlot:
        slot = await self._slot(for_update=True)
        if slot is None:
            slot = VoucherManagerSlot(id=SLOT_ID, staff_id=None)
            self.db.add(slot)
            await self.db.flush()
        return slot

    async def get_current_holder(self) -> Optional[int]:
        slot = await self._slot()
        return slot.staff_id if slot is not None else None

    async def get_current_holder_staff(self) -> Optional[Staff]:
        holder_id = await self.get_current_holder()
        if holder_id is None:
            return None
        return await self.db.get(Staff, holder_id)

    async def voucher_permission_holders(self) -> Set[int]:
        """Staff holding any voucher code, read from the grants themselves."""
        codes = await exclusive_permission_codes(self.db)
        result = await self.db.execute(
            select(staff_global_permissions.c.staff_id)
            .where(staff_global_permissions.c.permission_code.in_(codes))
            .distinct()
        )
        return set(result.scalars().all())

    async def assign(
        self,
        staff_id: int,
        confirm_transfer: bool = False,
        actor_id: Optional[int] = None
    ) -> VoucherAssignment:
        """
        Make staff_id the voucher manager.

        Raises:
            TransferConfirmationRequired: another staff member holds the category
                and confirm_transfer is not set
            TransferConflict: the previous holder was revoked but the grant failed
        """
        slot = await self._locked_slot()
        previous = slot.staff_id

        if previous == staff_id:
            await self.db.commit()
            log.debug(f"Staff {staff_id} already manages vouchers")
            return VoucherAssignment(holder_id=staff_id, changed=False)

        if previous is not None:
            if not confirm_transfer:
                holder = await self.db.get(Staff, previous)
                await self.db.commit()
                raise TransferConfirmationRequired(previous, holder.full_name if holder else None)

            await self._revoke_holder(slot, previous)
            await self.db.commit()
            log.info(f"Voucher permissions revoked from staff {previous} for transfer to {staff_id}")

        try:
            affected = await self._grant_holder(staff_id, actor_id)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            if previous is not None:
                log.warning(f"Voucher transfer {previous} -> {staff_id} interrupted, category unassigned: {exc}")
                raise TransferConflict(previous, staff_id) from exc
            raise

        log.info(f"Staff {staff_id} is now the voucher manager (previous={previous})")
        return VoucherAssignment(
            holder_id=staff_id,
            previous_holder_id=previous,
            affected_count=affected,
        )

    async def revoke(self, staff_id: int) -> Optional[int]:
        """
        Unassign staff_id if it is the holder.

        Returns:
            Number of voucher grants removed, or None when staff_id was not the holder
        """
        slot = await self._slot(for_update=True)
        if slot is None or slot.staff_id != staff_id:
            await self.db.commit()
            log.debug(f"Staff {staff_id} does not manage vouchers; nothing to revoke")
            return None

        removed = await self._revoke_holder(slot, staff_id)
        await self.db.commit()
        log.info(f"Voucher permissions revoked from staff {staff_id}")
        return removed

    async def _revoke_holder(self, slot: VoucherManagerSlot, staff_id: int) -> int:
        codes = await exclusive_permission_codes(self.db)
        result = await self.db.execute(
            delete(staff_global_permissions).where(
                and_(
                    staff_global_permissions.c.staff_id == staff_id,
                    staff_global_permissions.c.permission_code.in_(codes),
                )
            )
        )
        slot.staff_id = None
        slot.assigned_at = None
        slot.assigned_by_id = None
        await self.db.flush()
        return result.rowcount or 0

    async def _grant_holder(self, staff_id: int, actor_id: Optional[int]) -> int:
        slot = await self._locked_slot()
        codes: List[str] = await exclusive_permission_codes(self.db)

        held = await self.db.execute(
            select(staff_global_permissions.c.permission_code).where(
                staff_global_permissions.c.staff_id == staff_id
            )
        )
        held_codes = set(held.scalars().all())
        missing = [code for code in codes if code not in held_codes]
        now = datetime.now()
        if missing:
            await self.db.execute(
                insert(staff_global_permissions),
                [
                    {
                        "staff_id": staff_id,
                        "permission_code": code,
                        "granted_at": now,
                        "granted_by_id": actor_id,
                    }
                    for code in missing
                ],
            )

        slot.staff_id = staff_id
        slot.assigned_at = now
        slot.assigned_by_id = actor_id
        await self.db.flush()
        return len(missing)
