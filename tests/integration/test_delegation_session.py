"""End-to-end tests driving DelegationSession through DelegationApiClient."""

import pytest

from app.features.permissions.changeset import PermissionStatus
from app.features.permissions.client import DelegationApiClient
from app.features.permissions.errors import (
    NotAuthorizedError,
    PartialFailure,
    TransferConfirmationRequired,
)
from app.features.permissions.executor import DelegationSession


async def open_session(api: DelegationApiClient, staff_id: int) -> DelegationSession:
    groups = await api.list_permission_groups()
    return await DelegationSession(api, staff_id, groups).open()


class TestDelegationSession:
    """Scenarios from selecting partners to a committed change."""

    @pytest.mark.asyncio
    async def test_grant_then_verify(self, api: DelegationApiClient, staff_a, assigned):
        staff_id = staff_a.id
        p1, p2 = assigned[0].id, assigned[1].id
        session = await open_session(api, staff_id)

        await session.select_partners([p1, p2])
        session.toggle("CONTRACT_READ")
        session.toggle("CONTRACT_CREATE")
        reports = await session.commit()

        assert [r.affected_count for r in reports] == [4]
        view = await api.get_grants(staff_id, [p1, p2])
        assert all(
            entry.permission_codes == {"CONTRACT_READ", "CONTRACT_CREATE"} for entry in view
        )
        assert session.changes.is_empty
        assert session.status("CONTRACT_READ") == PermissionStatus.FULL

    @pytest.mark.asyncio
    async def test_reset_discards_intent(self, api: DelegationApiClient, staff_a, assigned):
        staff_id = staff_a.id
        session = await open_session(api, staff_id)
        await session.select_partners([p.id for p in assigned])
        session.select_all()

        session.reset()

        assert session.changes.is_empty
        view = await api.get_grants(staff_id)
        assert all(entry.permissions == [] for entry in view)

    @pytest.mark.asyncio
    async def test_partial_failure_preserves_intent(
        self, api: DelegationApiClient, staff_a, assigned
    ):
        staff_id, p1, p2 = staff_a.id, assigned[0].id, assigned[1].id
        session = await open_session(api, staff_id)
        await session.select_partners([p1, p2])
        session.toggle("PARTNER_UPDATE")
        staged = session.changes

        # p2 is taken away after the session loaded it
        await api.unassign_partner_from_staff(p2, staff_id)

        with pytest.raises(PartialFailure) as exc_info:
            await session.commit()

        assert exc_info.value.report.failed_partner_ids == [p2]
        assert session.changes == staged
        view = await api.get_grants(staff_id, [p1])
        assert view[0].permission_codes == {"PARTNER_UPDATE"}

    @pytest.mark.asyncio
    async def test_revoke_through_session(self, api: DelegationApiClient, staff_a, assigned):
        staff_id, pid = staff_a.id, assigned[2].id
        await api.grant(staff_id, [pid], ["CONTRACT_READ", "CONTRACT_SEND"])
        session = await open_session(api, staff_id)
        await session.select_partners([pid])

        session.deselect_all_in_group("CONTRACT")
        assert session.status("CONTRACT_SEND") == PermissionStatus.NONE
        await session.commit()

        view = await api.get_grants(staff_id, [pid])
        assert view[0].permissions == []

    @pytest.mark.asyncio
    async def test_self_modification_raises(self, api: DelegationApiClient, manager, assigned):
        with pytest.raises(NotAuthorizedError):
            await api.grant(manager.id, [assigned[0].id], ["CONTRACT_READ"])


class TestVoucherClient:
    """Voucher manager transfer over the client."""

    @pytest.mark.asyncio
    async def test_exclusivity_transfer(self, api: DelegationApiClient, staff_a, staff_b):
        a_id, b_id = staff_a.id, staff_b.id
        await api.grant_voucher_permissions(a_id)

        with pytest.raises(TransferConfirmationRequired) as exc_info:
            await api.grant_voucher_permissions(b_id)
        assert exc_info.value.holder_id == a_id

        result = await api.grant_voucher_permissions(b_id, confirm_transfer=True)
        assert result.transferred

        current = await api.get_current_voucher_manager()
        assert current.manager_staff_id == b_id

        revoked = await api.revoke_voucher_permissions(b_id)
        assert revoked.affected_count == 5
        assert await api.get_current_voucher_manager() is None
