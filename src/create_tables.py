# create_tables.py
from database import engine, Base
# Import every model so it registers with Base
from modules.auth.models.user import User  # noqa: F401
from modules.notifications.models.notification import Notification  # noqa: F401
from modules.forms.models import (  # noqa: F401
    FormTemplate, FormTemplateVersion, Submission, Signature, Amendment, SubmissionSequence, WorkflowEvent
)
from utils.logger import setup_logger

logger = setup_logger(__name__)


def create_tables(bind=None):
    """Create every table that does not exist yet"""
    bind = bind or engine
    logger.info(f"Creating tables: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=bind)


if __name__ == "__main__":
    create_tables()
