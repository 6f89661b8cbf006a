"""
Pydantic schemas for staff accounts.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr

from app.features.staff.models import StaffRole


class StaffPublic(BaseModel):
    """Staff information visible to other console users."""
    id: int
    full_name: str
    email: EmailStr
    role: StaffRole
    
    model_config = {"from_attributes": True}


class ManagedPartner(BaseModel):
    id: int
    name: str
    
    model_config = {"from_attributes": True}


class StaffResponse(StaffPublic):
    """Full staff account, including the partners it manages."""
    phone: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    partners: list[ManagedPartner] = []
    is_voucher_manager: bool = False
    
    model_config = {"from_attributes": True}
