"""
Delegation edit session.

A DelegationSession is one manager's editing pass over one manager staff
member: pick partners, stage grant and revoke intents, then commit them through
a PermissionMatrix. The matrix is either the in-process PermissionMatrixService
or the HTTP DelegationApiClient.
"""
from typing import Iterable, List, Optional, Protocol, Set

from app.features.permissions import changeset
from app.features.permissions.changeset import (
    PendingAction,
    PendingChangeSet,
    PermissionScope,
    PermissionStatus,
)
from app.features.permissions.errors import PartialFailure, ValidationError
from app.features.permissions.schemas import (
    BulkOperationReport,
    PartnerPermissions,
    ResourceGroup,
)
from app.utils import get_logger


log = get_logger(__name__)


class PermissionMatrix(Protocol):
    async def get_grants(
        self,
        staff_id: int,
        partner_ids: Optional[Iterable[int]] = None
    ) -> List[PartnerPermissions]:
        ...

    async def grant(
        self,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str]
    ) -> BulkOperationReport:
        ...

    async def revoke(
        self,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str]
    ) -> BulkOperationReport:
        ...


class DelegationSession:
    """
    Staged permission edits for one manager staff member.

    Usage:
        session = DelegationSession(matrix, staff_id, groups)
        await session.open()
        await session.select_partners([1, 2])
        session.toggle("CONTRACT_READ")
        await session.commit()
    """

    def __init__(
        self,
        matrix: PermissionMatrix,
        staff_id: int,
        groups: Optional[List[ResourceGroup]] = None
    ):
        self.matrix = matrix
        self.staff_id = staff_id
        self.groups: List[ResourceGroup] = list(groups or [])
        self.managed: List[PartnerPermissions] = []
        self.scope = PermissionScope(staff_id=staff_id)
        self.changes = PendingChangeSet()

    # ------------------------------------------------------------------
    # Scope
    # ------------------------------------------------------------------

    async def open(self) -> "DelegationSession":
        """Load every partner the staff member manages; nothing is selected yet."""
        self.managed = await self.matrix.get_grants(self.staff_id)
        self.scope = PermissionScope(staff_id=self.staff_id)
        self.changes = changeset.reset()
        if not self.managed:
            log.info(f"Staff {self.staff_id} does not manage any partner")
        return self

    @property
    def has_managed_partners(self) -> bool:
        return bool(self.managed)

    @property
    def managed_partner_ids(self) -> Set[int]:
        return {entry.partner_id for entry in self.managed}

    @property
    def selected_partner_ids(self) -> Set[int]:
        return set(self.scope.partner_ids)

    async def select_partners(self, partner_ids: Iterable[int]) -> None:
        """Replace the selection. Any staged change is discarded."""
        partner_ids = set(partner_ids)
        unknown = partner_ids - self.managed_partner_ids
        if unknown:
            raise ValidationError(
                f"Staff {self.staff_id} does not manage partners {sorted(unknown)}",
                partner_ids=sorted(unknown),
            )
        self.changes = changeset.reset()
        await self._refresh(partner_ids)

    async def toggle_partner(self, partner_id: int) -> None:
        selected = self.selected_partner_ids
        if partner_id in selected:
            selected.discard(partner_id)
        else:
            selected.add(partner_id)
        await self.select_partners(selected)

    async def _refresh(self, partner_ids: Optional[Iterable[int]] = None) -> None:
        if partner_ids is None:
            partner_ids = self.scope.partner_ids
        partner_ids = frozenset(partner_ids)
        self.managed = await self.matrix.get_grants(self.staff_id)
        self.scope = PermissionScope.from_view(self.staff_id, partner_ids, self.managed)

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def _group_codes(self, resource_type: str) -> List[str]:
        for group in self.groups:
            if group.resource_type == resource_type:
                return [p.permission_code for p in group.permissions]
        raise ValidationError(f"Unknown permission group: {resource_type}", resource_type=resource_type)

    def _all_codes(self) -> List[str]:
        return [p.permission_code for group in self.groups for p in group.permissions]

    def toggle(self, code: str) -> None:
        self.changes = changeset.toggle_permission(self.scope, self.changes, code)

    def select_all_in_group(self, resource_type: str) -> None:
        self.changes = changeset.select_all_in_group(self.scope, self.changes, self._group_codes(resource_type))

    def deselect_all_in_group(self, resource_type: str) -> None:
        self.changes = changeset.deselect_all_in_group(self.scope, self.changes, self._group_codes(resource_type))

    def select_all(self) -> None:
        self.changes = changeset.select_all_in_group(self.scope, self.changes, self._all_codes())

    def deselect_all(self) -> None:
        self.changes = changeset.deselect_all_in_group(self.scope, self.changes, self._all_codes())

    def reset(self) -> None:
        self.changes = changeset.reset()

    def status(self, code: str) -> PermissionStatus:
        return changeset.permission_status(self.scope, self.changes, code)

    def effective_granted_count(self, code: str) -> int:
        return changeset.effective_granted_count(self.scope, self.changes, code)

    def pending_action(self, code: str) -> Optional[PendingAction]:
        return self.changes.pending_action(code)

    def fully_granted_count(self, resource_type: str) -> int:
        return changeset.fully_granted_count(self.scope, self.changes, self._group_codes(resource_type))

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self) -> List[BulkOperationReport]:
        """
        Apply staged grants, then staged revokes.

        On success the change set is cleared and the view reloaded. On any
        failure the change set and the loaded view are both kept, so the
        manager can retry the same intent.

        Raises:
            ValidationError: nothing selected, or nothing staged
            PartialFailure: a bulk operation did not succeed on every partner
        """
        if not self.scope.partner_ids:
            raise ValidationError("Select at least one partner")
        if self.changes.is_empty:
            raise ValidationError("No permission changes to apply")

        partner_ids = sorted(self.scope.partner_ids)
        reports: List[BulkOperationReport] = []

        if self.changes.grants:
            report = await self.matrix.grant(self.staff_id, partner_ids, sorted(self.changes.grants))
            reports.append(report)
            if not report.success:
                log.warning(f"Grant for staff {self.staff_id} failed on partners {report.failed_partner_ids}")
                raise PartialFailure(report)

        if self.changes.revokes:
            report = await self.matrix.revoke(self.staff_id, partner_ids, sorted(self.changes.revokes))
            reports.append(report)
            if not report.success:
                log.warning(f"Revoke for staff {self.staff_id} failed on partners {report.failed_partner_ids}")
                raise PartialFailure(report)

        log.info(
            f"Committed changes for staff {self.staff_id}: grants={sorted(self.changes.grants)} "
            f"revokes={sorted(self.changes.revokes)} partners={partner_ids}"
        )
        self.changes = changeset.reset()
        await self._refresh()
        return reports
