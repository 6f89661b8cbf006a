"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models should inherit from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.
    
    Usage:
        from app.core.database.base import Base
        
        class Partner(Base):
            __tablename__ = "partners"
            
            id: Mapped[int] = mapped_column(primary_key=True)
            name: Mapped[str] = mapped_column(String(255))
    """
    pass


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    
    Usage:
        class Staff(Base, TimestampMixin):
            __tablename__ = "staff"
            id: Mapped[int] = mapped_column(primary_key=True)
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
