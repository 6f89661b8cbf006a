"""
Staff account model.

Staff are the console's users: managers, who delegate permissions, and
manager staff, who receive partner-scoped permissions from a manager.
"""
import enum
from datetime import datetime
from sqlalchemy import String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin


class StaffRole(str, enum.Enum):
    """Authority level of a staff account."""
    MANAGER = "manager"
    MANAGER_STAFF = "manager_staff"


class Staff(Base, TimestampMixin):
    """
    Staff account authenticated through Appwrite.
    
    Manager staff manage the partners they are assigned to (see
    app.features.partners.models.staff_partners) within the permissions a
    manager has granted them.
    """
    __tablename__ = "staff"
    
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    
    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    
    role: Mapped[StaffRole] = mapped_column(
        SQLEnum(StaffRole),
        default=StaffRole.MANAGER_STAFF,
        nullable=False,
        index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    
    # Partners this staff member is assigned to manage
    partners: Mapped[list["Partner"]] = relationship(  # type: ignore
        "Partner",
        secondary="staff_partners",
        back_populates="staff",
        lazy="selectin"
    )
    
    @property
    def is_manager(self) -> bool:
        return self.role == StaffRole.MANAGER
    
    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, email={self.email!r}, role={self.role})>"
