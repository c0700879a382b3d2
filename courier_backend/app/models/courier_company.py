"""
Courier company database model.

Groups drivers and courier admins and scopes package assignment.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base


class CourierCompany(Base):
    """Courier company. Deactivation is a flag flip, never a delete."""
    __tablename__ = "courier_companies"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(200), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<CourierCompany(id={self.id}, name='{self.name}', active={self.is_active})>"
