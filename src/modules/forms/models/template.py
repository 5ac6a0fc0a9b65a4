from sqlalchemy import (
    Column, Integer, String, DateTime, Enum, ForeignKey, JSON, Boolean, UniqueConstraint, event, inspect
)
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base
from modules.forms.exceptions import TemplateImmutable


class TemplateStatus(PyEnum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class Recurrence(PyEnum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    PER_EVENT = "PER_EVENT"


class FormTemplate(Base):
    __tablename__ = 'form_templates'
    __table_args__ = (UniqueConstraint('company_id', 'template_code'),)

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=False, default=1)
    template_code = Column(String(20), nullable=False)
    name = Column(String, nullable=False)
    form_type = Column(String(50), nullable=False, default="CHECKLIST")
    status = Column(Enum(TemplateStatus), nullable=False, default=TemplateStatus.PUBLISHED)
    created_at = Column(DateTime, default=datetime.utcnow)

    versions = relationship(
        "FormTemplateVersion",
        back_populates="template",
        order_by="FormTemplateVersion.version"
    )


class FormTemplateVersion(Base):
    """One published, immutable revision of a template."""
    __tablename__ = 'form_template_versions'
    __table_args__ = (UniqueConstraint('template_id', 'version'),)

    id = Column(Integer, primary_key=True)
    template_id = Column(Integer, ForeignKey('form_templates.id'), nullable=False)
    version = Column(Integer, nullable=False)
    form_schema = Column(JSON, nullable=False)
    required_signers = Column(JSON, nullable=False)
    recurrence = Column(Enum(Recurrence), nullable=False, default=Recurrence.NONE)
    allow_parallel_signing = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    template = relationship("FormTemplate", back_populates="versions")


FROZEN_VERSION_ATTRIBUTES = ("form_schema", "required_signers", "allow_parallel_signing", "version", "template_id")


@event.listens_for(FormTemplateVersion, "before_update")
def _refuse_version_mutation(mapper, connection, target):
    state = inspect(target)
    changed = [name for name in FROZEN_VERSION_ATTRIBUTES if state.attrs[name].history.has_changes()]
    if changed:
        raise TemplateImmutable(
            f"Template version {target.template_id}/v{target.version} is immutable "
            f"(attempted change to {', '.join(changed)}); publish a new version instead"
        )
