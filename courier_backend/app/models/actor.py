"""
Actor database model.

An actor is any platform participant: customer, driver, courier admin or
super admin. Credentials live with the external identity provider.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base
from courier_backend.app.models.enums import ActorRole


class Actor(Base):
    """
    Actor model.

    Role and company affiliation determine which packages the actor may see
    or change. A NULL role means the profile could not be resolved; such an
    actor has an empty scope.
    """
    __tablename__ = "actors"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)

    role = Column(Enum(ActorRole), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Drivers and courier admins belong to one courier company
    courier_company_id = Column(Integer, ForeignKey("courier_companies.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        role = self.role.value if self.role else None
        return f"<Actor(id={self.id}, email='{self.email}', role='{role}', company={self.courier_company_id})>"
