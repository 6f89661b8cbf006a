"""
Errors raised by the permission delegation subsystem.

Every error carries the HTTP status it maps to and a stable ``code`` so that the
API and DelegationApiClient can translate between exceptions and JSON bodies.
"""
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.features.permissions.schemas import BulkOperationReport


class DelegationError(Exception):
    """Base class for permission delegation failures."""

    status_code: int = 400
    code: str = "delegation_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class ValidationError(DelegationError):
    """Request rejected before touching storage (no partners, empty change set, bad codes)."""

    status_code = 400
    code = "validation_error"


class NotAuthorizedError(DelegationError):
    """Caller may not modify the target staff member's permissions."""

    status_code = 403
    code = "not_authorized"


class PartialFailure(DelegationError):
    """Some partners in a bulk grant/revoke failed; the others were applied."""

    status_code = 207
    code = "partial_failure"

    def __init__(self, report: "BulkOperationReport"):
        failed = report.failed_partner_ids
        super().__init__(
            f"Permission update failed for partners {failed}",
            failed_partner_ids=failed,
        )
        self.report = report

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "report": self.report.model_dump(mode="json")}


class TransferConfirmationRequired(DelegationError):
    """The exclusive voucher category is held by someone else and the transfer was not confirmed."""

    status_code = 409
    code = "transfer_confirmation_required"

    def __init__(self, holder_id: int, holder_name: Optional[str]):
        super().__init__(
            f"{holder_name or f'Staff {holder_id}'} currently manages vouchers; "
            "confirm the transfer to move the permission",
            current_holder_id=holder_id,
            current_holder_name=holder_name,
        )
        self.holder_id = holder_id
        self.holder_name = holder_name


class TransferConflict(DelegationError):
    """A voucher transfer was interrupted after the previous holder was revoked."""

    status_code = 409
    code = "transfer_conflict"

    def __init__(self, previous_holder_id: int, staff_id: int):
        super().__init__(
            f"Voucher permissions were revoked from staff {previous_holder_id} but could not be "
            f"granted to staff {staff_id}; no one currently manages vouchers",
            previous_holder_id=previous_holder_id,
            staff_id=staff_id,
            current_holder_id=None,
        )
        self.previous_holder_id = previous_holder_id
        self.staff_id = staff_id
