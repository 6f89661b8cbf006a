"""
Pydantic schemas for permission delegation.

Request and response models for the catalog, staff permission views, bulk
grant/revoke reports, the voucher manager, and audit logs.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


# ============================================================================
# Catalog Schemas
# ============================================================================

class PermissionDefinitionResponse(BaseModel):
    """One catalog entry."""
    permission_id: int = Field(validation_alias="id")
    permission_code: str = Field(validation_alias="code")
    permission_name: str = Field(validation_alias="name")
    description: Optional[str] = None
    resource_type: str
    action_type: str
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ResourceGroup(BaseModel):
    """Catalog entries sharing a resource type."""
    resource_type: str
    resource_name: str
    permissions: List[PermissionDefinitionResponse] = []


class AvailablePermissionsResponse(BaseModel):
    permission_groups: List[ResourceGroup]


# ============================================================================
# Staff Permission View Schemas
# ============================================================================

class GrantedPermission(PermissionDefinitionResponse):
    """A catalog entry as held by a staff member on one partner."""
    granted_at: datetime
    granted_by_id: Optional[int] = None


class PartnerPermissions(BaseModel):
    """Grants of one staff member on one partner they manage."""
    partner_id: int
    partner_name: str
    tax_code: Optional[str] = None
    address: Optional[str] = None
    permissions: List[GrantedPermission] = []

    @property
    def permission_codes(self) -> frozenset:
        return frozenset(p.permission_code for p in self.permissions)


class StaffPermissionsResponse(BaseModel):
    manager_staff_id: int
    manager_staff_name: str
    partner_permissions: List[PartnerPermissions]


# ============================================================================
# Bulk Grant / Revoke Schemas
# ============================================================================

class PermissionChangeRequest(BaseModel):
    """Body of a bulk grant or revoke over partner_ids x permission_codes."""
    partner_ids: List[int] = Field(default_factory=list, description="Partners to apply the change to")
    permission_codes: List[str] = Field(default_factory=list, description="Permission codes to grant or revoke")

    @field_validator("permission_codes")
    @classmethod
    def normalize_codes(cls, v: List[str]) -> List[str]:
        """Strip, uppercase, and de-duplicate codes preserving order."""
        seen: Dict[str, None] = {}
        for code in v:
            code = code.strip().upper()
            if code:
                seen.setdefault(code, None)
        return list(seen)

    @field_validator("partner_ids")
    @classmethod
    def unique_partner_ids(cls, v: List[int]) -> List[int]:
        return sorted(set(v))


class PartnerOperationResult(BaseModel):
    """Outcome of a bulk operation on one partner."""
    partner_id: int
    success: bool
    affected_count: int = 0
    permission_codes: List[str] = []
    error: Optional[str] = None


class BulkOperationReport(BaseModel):
    """Per-partner outcome of a bulk grant or revoke."""
    success: bool
    message: str
    affected_count: int = 0
    results: List[PartnerOperationResult] = []

    @property
    def failed_partner_ids(self) -> List[int]:
        return [r.partner_id for r in self.results if not r.success]

    @property
    def succeeded_partner_ids(self) -> List[int]:
        return [r.partner_id for r in self.results if r.success]


# ============================================================================
# Voucher Manager Schemas
# ============================================================================

class CurrentVoucherManager(BaseModel):
    manager_staff_id: int
    manager_staff_name: str


class GrantVoucherPermissionsRequest(BaseModel):
    """Confirm flag must be set to move the category away from a current holder."""
    confirm_transfer: bool = Field(False, description="Confirm revoking the current voucher manager")


class VoucherAssignmentResponse(BaseModel):
    success: bool
    message: str
    manager_staff_id: Optional[int]
    previous_manager_staff_id: Optional[int] = None
    transferred: bool = False
    affected_count: int = 0


class VoucherRevocationResponse(BaseModel):
    success: bool
    message: str
    affected_count: int = 0


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    actor_id: Optional[int]
    action: str
    resource_type: str
    resource_id: Optional[str]
    partner_id: Optional[int]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
