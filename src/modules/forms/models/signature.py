from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, Enum, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class SignatureMethod(PyEnum):
    PIN = "PIN"
    BIOMETRIC = "BIOMETRIC"
    DRAWN = "DRAWN"
    SSO = "SSO"


class SignatureAction(PyEnum):
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"
    DELEGATED = "DELEGATED"


class Signature(Base):
    __tablename__ = "form_signatures"
    # One row per slot and action within a signing round
    __table_args__ = (
        UniqueConstraint("submission_id", "signing_round", "sign_order", "action", name="uq_signature_slot"),
    )

    id = Column(Integer, primary_key=True)
    submission_id = Column(Integer, ForeignKey("form_submissions.id"), nullable=False)
    signing_round = Column(Integer, nullable=False)
    order = Column("sign_order", Integer, nullable=False)
    role = Column(String(50), nullable=False)

    signer_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    signer_name = Column(String, nullable=True)

    method = Column(Enum(SignatureMethod), nullable=False)
    action = Column(Enum(SignatureAction), nullable=False)
    rejection_reason = Column(Text, nullable=True)
    delegated_to_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    signature_data = Column(Text, nullable=True)
    content_hash = Column(String(64), nullable=False)

    is_superseded = Column(Boolean, nullable=False, default=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String, nullable=True)
    signed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    submission = relationship("Submission", back_populates="signatures")
    signer = relationship("User", foreign_keys=[signer_user_id])
