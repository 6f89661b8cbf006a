"""Unit tests for DelegationApiClient error translation."""

import httpx
import pytest

from app.features.permissions.client import DelegationApiClient
from app.features.permissions.errors import (
    DelegationError,
    TransferConfirmationRequired,
    TransferConflict,
    ValidationError,
)


def client_returning(status_code: int, body) -> DelegationApiClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    return DelegationApiClient("http://test", "token", transport=httpx.MockTransport(handler))


class TestErrorTranslation:
    """Tests for mapping error bodies back onto exceptions."""

    @pytest.mark.asyncio
    async def test_transfer_confirmation_required(self):
        body = {
            "detail": "An Le currently manages vouchers",
            "code": "transfer_confirmation_required",
            "current_holder_id": 3,
            "current_holder_name": "An Le",
        }
        async with client_returning(409, body) as api:
            with pytest.raises(TransferConfirmationRequired) as exc_info:
                await api.grant_voucher_permissions(4)
        assert exc_info.value.holder_id == 3
        assert exc_info.value.holder_name == "An Le"

    @pytest.mark.asyncio
    async def test_transfer_conflict(self):
        body = {"detail": "interrupted", "code": "transfer_conflict", "previous_holder_id": 3, "staff_id": 4}
        async with client_returning(409, body) as api:
            with pytest.raises(TransferConflict) as exc_info:
                await api.grant_voucher_permissions(4, confirm_transfer=True)
        assert exc_info.value.previous_holder_id == 3

    @pytest.mark.asyncio
    async def test_request_validation_becomes_validation_error(self):
        async with client_returning(400, {"permission_codes": "Field required"}) as api:
            with pytest.raises(ValidationError):
                await api.grant(4, [1], [])

    @pytest.mark.asyncio
    async def test_not_found_keeps_status(self):
        async with client_returning(404, {"detail": "Manager staff not found"}) as api:
            with pytest.raises(DelegationError) as exc_info:
                await api.get_grants(99)
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Manager staff not found"

    @pytest.mark.asyncio
    async def test_partial_failure_body_is_a_report(self):
        body = {
            "detail": "Permission update failed for partners [2]",
            "code": "partial_failure",
            "failed_partner_ids": [2],
            "report": {
                "success": False,
                "message": "Grant applied to 1 of 2 partners",
                "affected_count": 1,
                "results": [
                    {"partner_id": 1, "success": True, "affected_count": 1},
                    {"partner_id": 2, "success": False, "error": "not assigned"},
                ],
            },
        }
        async with client_returning(207, body) as api:
            report = await api.grant(4, [1, 2], ["CONTRACT_READ"])
        assert not report.success
        assert report.failed_partner_ids == [2]
