"""
Partner models.

Partners are the cinema-chain businesses whose resources are delegated to
manager staff. A staff member can act on a partner only after being assigned
to it through staff_partners.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Table, Column, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin


# Assignment relationship between manager staff and the partners they manage
staff_partners = Table(
    "staff_partners",
    Base.metadata,
    Column("staff_id", Integer, ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True),
    Column("partner_id", Integer, ForeignKey("partners.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
    Column("assigned_by_id", Integer, nullable=True),
)


class Partner(Base, TimestampMixin):
    """
    Partner model representing a cinema chain.
    
    Partners are identified by tax code; registration is handled elsewhere.
    """
    __tablename__ = "partners"
    
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tax_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    # Manager staff assigned to this partner
    staff: Mapped[list["Staff"]] = relationship(  # type: ignore
        "Staff",
        secondary=staff_partners,
        back_populates="partners",
        lazy="selectin"
    )
    
    def __repr__(self) -> str:
        return f"<Partner(id={self.id}, name={self.name!r}, tax_code={self.tax_code})>"
