"""
Permission catalog, grant matrix, voucher manager slot, and audit log models.

This module persists the delegation state:
- The permission catalog (configuration, seeded at startup)
- Partner-scoped grants (staff x partner x permission)
- Partner-agnostic grants, used for the exclusive voucher category
- The single voucher manager slot
- An audit trail of every delegation change
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import (
    String, ForeignKey, Table, Column, JSON, Text, DateTime, Integer, Boolean, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from ulid import ULID

from app.core.database.base import Base, TimestampMixin


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


# ============================================================================
# Grant Tables
# ============================================================================

# One row per Grant: staff member holds permission_code on partner_id
staff_partner_permissions = Table(
    "staff_partner_permissions",
    Base.metadata,
    Column("staff_id", Integer, ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True),
    Column("partner_id", Integer, ForeignKey("partners.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_code",
        String(100),
        ForeignKey("permission_definitions.code", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("granted_at", DateTime(timezone=True), nullable=False, default=datetime.now),
    Column("granted_by_id", Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
)

# System-wide grants (not tied to a partner); holds the voucher category
staff_global_permissions = Table(
    "staff_global_permissions",
    Base.metadata,
    Column("staff_id", Integer, ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_code",
        String(100),
        ForeignKey("permission_definitions.code", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("granted_at", DateTime(timezone=True), nullable=False, default=datetime.now),
    Column("granted_by_id", Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
)


# ============================================================================
# Core Models
# ============================================================================

class PermissionDefinition(Base, TimestampMixin):
    """
    Catalog entry for one fine-grained capability.

    Examples:
    - code="CONTRACT_READ", resource_type="CONTRACT", action_type="READ"
    - code="VOUCHER_SEND", resource_type="VOUCHER", action_type="SEND"
    """
    __tablename__ = "permission_definitions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Grouping
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_name: Mapped[str] = mapped_column(String(100), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<PermissionDefinition(code={self.code!r}, resource={self.resource_type}, action={self.action_type})>"


class VoucherManagerSlot(Base, TimestampMixin):
    """
    The single voucher manager record.

    Exactly one row (id=1) exists once the slot has been used; staff_id is the
    current holder or NULL when unassigned.
    """
    __tablename__ = "voucher_manager_slot"
    __table_args__ = (CheckConstraint("id = 1", name="ck_voucher_manager_singleton"),)

    id: Mapped[int] = mapped_column(primary_key=True, default=1)
    staff_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="SET NULL"),
        nullable=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<VoucherManagerSlot(staff_id={self.staff_id})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for tracking delegation changes.

    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    actor_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    # Context
    partner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, actor_id={self.actor_id}, action={self.action}, resource={self.resource_type})>"
