from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, JSON, Enum, Text
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class EventStatus(PyEnum):
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class WorkflowEvent(Base):
    """Outbox row for a notification hook, written in the transition's transaction."""
    __tablename__ = "workflow_events"

    id = Column(Integer, primary_key=True)
    submission_id = Column(Integer, ForeignKey("form_submissions.id"), nullable=False)
    effect = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(Enum(EventStatus), nullable=False, default=EventStatus.PENDING)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    delivered_at = Column(DateTime, nullable=True)
