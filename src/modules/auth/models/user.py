from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship, validates
from datetime import datetime
from database import Base

# Designated Person Ashore: the shore role that approves amendments
DPA_ROLE = "dpa"


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    # Shipboard/shore role matched against template signer roles (master, chief_officer, dpa, ...)
    role = Column(String(50), nullable=False)
    company_id = Column(Integer, nullable=False, default=1)
    signature_pin_hash = Column(String, nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    notifications = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @validates("role")
    def _normalize_role(self, key, value):
        return value.strip().lower()
