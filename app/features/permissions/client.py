"""
HTTP client for the permission delegation API.

DelegationApiClient speaks to a running server (or to the ASGI app directly
through an httpx transport) and satisfies the PermissionMatrix protocol, so a
DelegationSession can be driven over the network exactly as it is in process.
Error responses are translated back into DelegationError subclasses.
"""
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.features.partners.schemas import AssignmentResponse
from app.features.permissions.errors import (
    DelegationError,
    NotAuthorizedError,
    TransferConfirmationRequired,
    TransferConflict,
    ValidationError,
)
from app.features.permissions.schemas import (
    BulkOperationReport,
    CurrentVoucherManager,
    PartnerPermissions,
    ResourceGroup,
    StaffPermissionsResponse,
    VoucherAssignmentResponse,
    VoucherRevocationResponse,
)
from app.utils import get_logger


log = get_logger(__name__)


class DelegationApiClient:
    """
    Async client for /manager/staff and /partners.

    Usage:
        async with DelegationApiClient("http://localhost:8000", token) as api:
            session = DelegationSession(api, staff_id, await api.list_permission_groups())
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "DelegationApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        log.debug(f"{method} {url} -> {response.status_code}")
        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> Exception:
        try:
            body: Dict[str, Any] = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        code = body.get("code")
        detail = body.get("detail") or response.text

        if code == TransferConfirmationRequired.code:
            return TransferConfirmationRequired(body.get("current_holder_id"), body.get("current_holder_name"))
        if code == TransferConflict.code:
            return TransferConflict(body.get("previous_holder_id"), body.get("staff_id"))
        if code == NotAuthorizedError.code:
            return NotAuthorizedError(detail)
        if code == ValidationError.code or response.status_code == 400:
            return ValidationError(str(detail))

        error = DelegationError(str(detail))
        error.status_code = response.status_code
        return error

    def _report(self, response: httpx.Response) -> BulkOperationReport:
        body = response.json()
        if response.status_code == 207:
            return BulkOperationReport.model_validate(body["report"])
        return BulkOperationReport.model_validate(body)

    # ------------------------------------------------------------------
    # PermissionMatrix
    # ------------------------------------------------------------------

    async def get_grants(
        self,
        staff_id: int,
        partner_ids: Optional[Iterable[int]] = None
    ) -> List[PartnerPermissions]:
        params = None
        if partner_ids is not None:
            partner_ids = sorted(set(partner_ids))
            if not partner_ids:
                return []
            params = {"partner_ids": partner_ids}
        response = await self._request("GET", f"/manager/staff/{staff_id}/permissions", params=params)
        return StaffPermissionsResponse.model_validate(response.json()).partner_permissions

    async def grant(
        self,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str]
    ) -> BulkOperationReport:
        response = await self._request(
            "POST",
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": list(partner_ids), "permission_codes": list(permission_codes)},
        )
        return self._report(response)

    async def revoke(
        self,
        staff_id: int,
        partner_ids: Iterable[int],
        permission_codes: Iterable[str]
    ) -> BulkOperationReport:
        response = await self._request(
            "DELETE",
            f"/manager/staff/{staff_id}/permissions",
            json={"partner_ids": list(partner_ids), "permission_codes": list(permission_codes)},
        )
        return self._report(response)

    # ------------------------------------------------------------------
    # Catalog, voucher manager, assignments
    # ------------------------------------------------------------------

    async def list_permission_groups(self, include_exclusive: bool = False) -> List[ResourceGroup]:
        response = await self._request(
            "GET",
            "/manager/staff/permissions/available",
            params={"include_exclusive": include_exclusive},
        )
        return [ResourceGroup.model_validate(group) for group in response.json()["permission_groups"]]

    async def get_current_voucher_manager(self) -> Optional[CurrentVoucherManager]:
        response = await self._request("GET", "/manager/staff/voucher-permission/current")
        body = response.json()
        return CurrentVoucherManager.model_validate(body) if body else None

    async def grant_voucher_permissions(
        self,
        staff_id: int,
        confirm_transfer: bool = False
    ) -> VoucherAssignmentResponse:
        response = await self._request(
            "POST",
            f"/manager/staff/{staff_id}/voucher-permissions",
            json={"confirm_transfer": confirm_transfer},
        )
        return VoucherAssignmentResponse.model_validate(response.json())

    async def revoke_voucher_permissions(self, staff_id: int) -> VoucherRevocationResponse:
        response = await self._request("DELETE", f"/manager/staff/{staff_id}/voucher-permissions")
        return VoucherRevocationResponse.model_validate(response.json())

    async def assign_partner_to_staff(self, partner_id: int, staff_id: int) -> AssignmentResponse:
        response = await self._request(
            "PUT",
            f"/partners/{partner_id}/assign-staff",
            json={"manager_staff_id": staff_id},
        )
        return AssignmentResponse.model_validate(response.json())

    async def unassign_partner_from_staff(self, partner_id: int, staff_id: int) -> AssignmentResponse:
        response = await self._request("DELETE", f"/partners/{partner_id}/assign-staff/{staff_id}")
        return AssignmentResponse.model_validate(response.json())
