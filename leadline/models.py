from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), default=ROLE_CUSTOMER, nullable=False)  # customer, admin
    # Not guaranteed to point at an existing business (deleted/never created)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    phone_number = Column(String(20), nullable=True)  # Owner phone, E.164
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="users")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    industry = Column(String(50), nullable=True)  # IndustryCode value
    address = Column(String(500), nullable=True)
    city = Column(String(255), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    # The business's existing line; the AI number is provisioned separately
    business_line_phone = Column(String(20), nullable=True)
    business_hours = Column(JSON, nullable=True)  # {"open": "08:00", "close": "17:00", "days": [...]}
    departments = Column(JSON, default=list)
    service_areas = Column(JSON, default=list)
    crm_webhook_url = Column(String(500), nullable=True)
    forward_to_email = Column(String(255), nullable=True)
    after_hours_emergency_phone = Column(String(20), nullable=True)
    custom_script = Column(Boolean, default=False, nullable=False)
    multi_location = Column(Boolean, default=False, nullable=False)
    onboarding_complete = Column(Boolean, default=False, nullable=False)
    requires_manual_setup = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    users = relationship("User", back_populates="business")
