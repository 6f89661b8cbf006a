"""
Pydantic schemas for partner-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field


class PartnerPublic(BaseModel):
    """Public partner information."""
    id: int
    name: str
    tax_code: str
    address: str | None = None
    
    model_config = {"from_attributes": True}


class AssignedStaff(BaseModel):
    id: int
    full_name: str
    
    model_config = {"from_attributes": True}


class PartnerResponse(PartnerPublic):
    """Partner with contact details and assigned staff."""
    email: str | None = None
    phone: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    staff: list[AssignedStaff] = []
    
    model_config = {"from_attributes": True}


class AssignPartnerToStaff(BaseModel):
    """Schema for assigning a partner to a manager staff account."""
    manager_staff_id: int = Field(..., description="Manager staff ID")


class AssignmentResponse(BaseModel):
    message: str
    partner_id: int
    manager_staff_id: int
