from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from database import Base


class SubmissionSequence(Base):
    """Per (company, template, year) counter backing submission numbers."""
    __tablename__ = "submission_sequences"
    __table_args__ = (UniqueConstraint("company_id", "template_id", "year"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=False)
    template_id = Column(Integer, ForeignKey("form_templates.id"), nullable=False)
    year = Column(Integer, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)
