"""Integration tests for the /manager/staff delegation endpoints."""

import pytest
from httpx import AsyncClient


class TestCatalogAPI:
    """Tests for GET /manager/staff/permissions/available."""

    @pytest.mark.asyncio
    async def test_voucher_group_hidden_by_default(self, client: AsyncClient):
        response = await client.get("/manager/staff/permissions/available")

        assert response.status_code == 200
        groups = response.json()["permission_groups"]
        assert [g["resource_type"] for g in groups] == ["CONTRACT", "PARTNER"]
        codes = [p["permission_code"] for p in groups[0]["permissions"]]
        assert codes == ["CONTRACT_READ", "CONTRACT_CREATE", "CONTRACT_UPDATE", "CONTRACT_SEND"]

    @pytest.mark.asyncio
    async def test_include_exclusive(self, client: AsyncClient):
        response = await client.get(
            "/manager/staff/permissions/available", params={"include_exclusive": "true"}
        )
        groups = response.json()["permission_groups"]
        assert groups[-1]["resource_type"] == "VOUCHER"


class TestStaffPermissionsAPI:
    """Tests for grant, revoke and read of per-partner permissions."""

    @pytest.mark.asyncio
    async def test_grant_then_read(self, client: AsyncClient, staff_a, assigned):
        staff_id = staff_a.id
        partner_ids = [assigned[0].id, assigned[1].id]

        response = await client.post(
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": partner_ids, "permission_codes": ["contract_read", "PARTNER_READ"]},
        )
        assert response.status_code == 200
        assert response.json()["affected_count"] == 4

        response = await client.get(
            f"/manager/staff/{staff_id}/permissions", params={"partner_ids": partner_ids}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["manager_staff_name"] == "An Le"
        for entry in data["partner_permissions"]:
            codes = {p["permission_code"] for p in entry["permissions"]}
            assert codes == {"CONTRACT_READ", "PARTNER_READ"}

    @pytest.mark.asyncio
    async def test_revoke_with_body(self, client: AsyncClient, staff_a, assigned):
        staff_id, pid = staff_a.id, assigned[0].id
        await client.post(
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": [pid], "permission_codes": ["CONTRACT_READ", "CONTRACT_SEND"]},
        )

        response = await client.request(
            "DELETE",
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": [pid], "permission_codes": ["CONTRACT_SEND"]},
        )

        assert response.status_code == 200
        assert response.json()["affected_count"] == 1
        view = (await client.get(f"/manager/staff/{staff_id}/permissions")).json()
        first = view["partner_permissions"][0]
        assert [p["permission_code"] for p in first["permissions"]] == ["CONTRACT_READ"]

    @pytest.mark.asyncio
    async def test_partial_failure_is_207(self, client: AsyncClient, staff_b, assigned):
        response = await client.post(
            f"/manager/staff/{staff_b.id}/permissions",
            json={"partner_ids": [p.id for p in assigned[:2]], "permission_codes": ["CONTRACT_READ"]},
        )

        assert response.status_code == 207
        body = response.json()
        assert body["code"] == "partial_failure"
        assert body["failed_partner_ids"] == [assigned[1].id]
        assert body["report"]["success"] is False

    @pytest.mark.asyncio
    async def test_voucher_code_rejected(self, client: AsyncClient, staff_a, assigned):
        response = await client.post(
            f"/manager/staff/{staff_a.id}/permissions",
            json={"partner_ids": [assigned[0].id], "permission_codes": ["VOUCHER_READ"]},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_self_modification_rejected(self, client: AsyncClient, manager, assigned):
        response = await client.post(
            f"/manager/staff/{manager.id}/permissions",
            json={"partner_ids": [assigned[0].id], "permission_codes": ["CONTRACT_READ"]},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "not_authorized"

    @pytest.mark.asyncio
    async def test_manager_staff_cannot_delegate(self, client: AsyncClient, acting, staff_a, staff_b, assigned):
        acting["id"] = staff_a.id
        response = await client.post(
            f"/manager/staff/{staff_b.id}/permissions",
            json={"partner_ids": [assigned[0].id], "permission_codes": ["CONTRACT_READ"]},
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_staff(self, client: AsyncClient, assigned):
        response = await client.get("/manager/staff/9999/permissions")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_audit_log_written(self, client: AsyncClient, manager, staff_a, assigned):
        await client.post(
            f"/manager/staff/{staff_a.id}/permissions",
            json={"partner_ids": [assigned[0].id], "permission_codes": ["CONTRACT_READ"]},
        )

        response = await client.get("/manager/staff/audit-logs", params={"action": "grant_permissions"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        entry = data["items"][0]
        assert entry["actor_id"] == manager.id
        assert entry["resource_id"] == str(staff_a.id)
        assert entry["details"]["permission_codes"] == ["CONTRACT_READ"]


class TestVoucherAPI:
    """Tests for the voucher manager endpoints."""

    @pytest.mark.asyncio
    async def test_no_current_holder(self, client: AsyncClient):
        response = await client.get("/manager/staff/voucher-permission/current")
        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.asyncio
    async def test_exclusivity_transfer(self, client: AsyncClient, staff_a, staff_b):
        a_id, b_id = staff_a.id, staff_b.id

        response = await client.post(f"/manager/staff/{a_id}/voucher-permissions", json={})
        assert response.status_code == 200

        response = await client.post(f"/manager/staff/{b_id}/voucher-permissions", json={})
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "transfer_confirmation_required"
        assert body["current_holder_id"] == a_id
        assert body["current_holder_name"] == "An Le"

        response = await client.post(
            f"/manager/staff/{b_id}/voucher-permissions", json={"confirm_transfer": True}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["transferred"] is True
        assert data["previous_manager_staff_id"] == a_id

        current = (await client.get("/manager/staff/voucher-permission/current")).json()
        assert current == {"manager_staff_id": b_id, "manager_staff_name": "Binh Do"}

    @pytest.mark.asyncio
    async def test_revoke_voucher_permissions(self, client: AsyncClient, staff_a, staff_b):
        a_id, b_id = staff_a.id, staff_b.id
        await client.post(f"/manager/staff/{a_id}/voucher-permissions")

        response = await client.delete(f"/manager/staff/{b_id}/voucher-permissions")
        assert response.status_code == 200
        assert response.json()["affected_count"] == 0

        response = await client.delete(f"/manager/staff/{a_id}/voucher-permissions")
        assert response.status_code == 200
        assert response.json()["affected_count"] == 5
        assert (await client.get("/manager/staff/voucher-permission/current")).json() is None

    @pytest.mark.asyncio
    async def test_staff_profile_flags_voucher_manager(self, client: AsyncClient, staff_a, staff_b):
        a_id = staff_a.id
        await client.post(f"/manager/staff/{a_id}/voucher-permissions")

        response = await client.get("/staff/")

        assert response.status_code == 200
        flags = {item["id"]: item["is_voucher_manager"] for item in response.json()}
        assert flags == {a_id: True, staff_b.id: False}
