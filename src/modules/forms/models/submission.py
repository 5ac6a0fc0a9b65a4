from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, JSON, Boolean, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class SubmissionStatus(PyEnum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"
    AMENDED = "AMENDED"
    ARCHIVED = "ARCHIVED"


class Submission(Base):
    __tablename__ = 'form_submissions'

    id = Column(Integer, primary_key=True)
    submission_number = Column(String(64), unique=True, nullable=False)
    company_id = Column(Integer, nullable=False)
    vessel_id = Column(Integer, nullable=True)
    scope_name = Column(String, nullable=True)

    template_id = Column(Integer, ForeignKey('form_templates.id'), nullable=False)
    template_version = Column(Integer, nullable=False)

    form_data = Column(JSON, nullable=False, default=dict)
    content_hash = Column(String(64), nullable=False)
    status = Column(Enum(SubmissionStatus), nullable=False, default=SubmissionStatus.DRAFT)
    is_locked = Column(Boolean, nullable=False, default=False)
    signing_round = Column(Integer, nullable=False, default=0)

    created_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    submitted_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    rejected_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    rejected_content_hash = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)
    locked_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    # Checked on every UPDATE; a stale writer gets StaleDataError
    row_version = Column(Integer, nullable=False)

    template = relationship("FormTemplate")
    signatures = relationship(
        "Signature",
        back_populates="submission",
        order_by="[Signature.signing_round, Signature.order]"
    )
    amendments = relationship(
        "Amendment",
        back_populates="submission",
        order_by="Amendment.amendment_number"
    )

    __mapper_args__ = {"version_id_col": row_version}
