from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, JSON, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base


class Amendment(Base):
    __tablename__ = "form_amendments"
    __table_args__ = (UniqueConstraint("submission_id", "amendment_number"),)

    id = Column(Integer, primary_key=True)
    submission_id = Column(Integer, ForeignKey("form_submissions.id"), nullable=False)
    amendment_number = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)

    previous_data = Column(JSON, nullable=False)
    new_data = Column(JSON, nullable=False)
    changed_fields = Column(JSON, nullable=False, default=list)
    previous_hash = Column(String(64), nullable=False)
    new_hash = Column(String(64), nullable=False)
    requires_re_signature = Column(Boolean, nullable=False, default=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    submission = relationship("Submission", back_populates="amendments")
