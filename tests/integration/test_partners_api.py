"""Integration tests for partner listing and staff assignment."""

import pytest
from httpx import AsyncClient


class TestPartnerReads:
    """Tests for GET /partners."""

    @pytest.mark.asyncio
    async def test_list_partners_with_staff(self, client: AsyncClient, staff_a, assigned):
        response = await client.get("/partners/")

        assert response.status_code == 200
        data = response.json()
        assert [p["tax_code"] for p in data] == [p.tax_code for p in assigned]
        assert [s["id"] for s in data[1]["staff"]] == [staff_a.id]

    @pytest.mark.asyncio
    async def test_unknown_partner(self, client: AsyncClient, partners):
        response = await client.get("/partners/9999")
        assert response.status_code == 404


class TestAssignment:
    """Tests for assigning and unassigning partners."""

    @pytest.mark.asyncio
    async def test_assign_enables_delegation(self, client: AsyncClient, staff_b, partners):
        staff_id, pid = staff_b.id, partners[2].id

        response = await client.post(
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": [pid], "permission_codes": ["CONTRACT_READ"]},
        )
        assert response.status_code == 207

        response = await client.put(f"/partners/{pid}/assign-staff", json={"manager_staff_id": staff_id})
        assert response.status_code == 200
        assert response.json()["manager_staff_id"] == staff_id

        response = await client.post(
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": [pid], "permission_codes": ["CONTRACT_READ"]},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_assign_twice_is_noop(self, client: AsyncClient, staff_a, assigned):
        response = await client.put(
            f"/partners/{assigned[0].id}/assign-staff", json={"manager_staff_id": staff_a.id}
        )
        assert response.status_code == 200
        assert "already" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_assign_to_manager_rejected(self, client: AsyncClient, manager, partners):
        response = await client.put(
            f"/partners/{partners[0].id}/assign-staff", json={"manager_staff_id": manager.id}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unassign_drops_grants(self, client: AsyncClient, staff_a, assigned):
        staff_id, pid = staff_a.id, assigned[0].id
        await client.post(
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": [pid], "permission_codes": ["CONTRACT_READ", "PARTNER_READ"]},
        )

        response = await client.delete(f"/partners/{pid}/assign-staff/{staff_id}")
        assert response.status_code == 200

        view = (await client.get(f"/manager/staff/{staff_id}/permissions")).json()
        assert pid not in [entry["partner_id"] for entry in view["partner_permissions"]]

        await client.put(f"/partners/{pid}/assign-staff", json={"manager_staff_id": staff_id})
        view = (await client.get(
            f"/manager/staff/{staff_id}/permissions", params={"partner_ids": [pid]}
        )).json()
        assert view["partner_permissions"][0]["permissions"] == []

    @pytest.mark.asyncio
    async def test_unassign_unknown_pair(self, client: AsyncClient, staff_b, assigned):
        response = await client.delete(f"/partners/{assigned[2].id}/assign-staff/{staff_b.id}")
        assert response.status_code == 404
