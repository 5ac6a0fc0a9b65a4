import os

# Must be set before anything imports settings/database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""
os.environ["SEED_DEMO_DATA"] = "false"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
import create_tables  # noqa: F401  registers every model
from modules.auth.models.user import User
from modules.auth.services.auth_service import AuthService
from modules.auth.services.identity import identity_from_user
from modules.forms.models.signature import SignatureMethod
from modules.forms.services.submission_service import SubmissionService, CreationContext
from modules.forms.services.template_registry import TemplateRegistry

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# bcrypt is slow on purpose; hash once per test run
PASSWORD = "secret123"
PIN = "2468"
PASSWORD_HASH = AuthService.get_password_hash(PASSWORD)
PIN_HASH = AuthService.get_pin_hash(PIN)

CHECKLIST_SCHEMA = {
    "fields": [
        {"id": "port", "type": "text", "label": "Port", "required": True},
        {"id": "berth", "type": "text", "label": "Berth"},
        {"id": "steering_tested", "type": "yes_no", "label": "Steering gear tested", "required": True},
        {"id": "crew_count", "type": "number", "label": "Crew on board", "min": 1},
        {"id": "photos", "type": "file", "label": "Photos", "max_files": 3},
    ]
}

TWO_SIGNERS = [
    {"role": "chief_officer", "order": 1},
    {"role": "master", "order": 2},
]

COMPLETE_DATA = {"port": "Rotterdam", "berth": "B12", "steering_tested": "YES", "crew_count": 21}


class RecordingSink:
    """Notification sink that only remembers what it was asked to do."""

    def __init__(self):
        self.calls = []

    def notify_first_signer(self, submission, payload):
        self.calls.append(("notify_first_signer", submission.id, payload))

    def notify_submitter(self, submission, payload):
        self.calls.append(("notify_submitter", submission.id, payload))

    def request_re_signatures(self, submission, payload):
        self.calls.append(("request_re_signatures", submission.id, payload))

    def effects(self):
        return [call[0] for call in self.calls]


class FailingSink(RecordingSink):
    def notify_first_signer(self, submission, payload):
        raise ConnectionError("mail relay unreachable")


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session():
    db = TestingSessionLocal()
    yield db
    db.close()


def create_user(session, name, role, company_id=1, with_pin=True):
    user = User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}@fleetmail.com",
        password_hash=PASSWORD_HASH,
        role=role,
        company_id=company_id,
        signature_pin_hash=PIN_HASH if with_pin else None,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def users(session):
    """Identities for the usual crew of a checklist."""
    return {
        "crew": identity_from_user(create_user(session, "Tom Reyes", "crew")),
        "chief": identity_from_user(create_user(session, "Lena Berg", "chief_officer")),
        "master": identity_from_user(create_user(session, "Erik Holm", "master")),
        "dpa": identity_from_user(create_user(session, "Maria Costa", "dpa")),
    }


@pytest.fixture
def template(session):
    return TemplateRegistry(session).create_template(
        company_id=1,
        template_code="PDC",
        name="Pre-Departure Checklist",
        form_schema=CHECKLIST_SCHEMA,
        required_signers=TWO_SIGNERS,
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def service(session, sink):
    return SubmissionService(session, sink=sink)


def new_submission(service, template, actor, data=None, scope_name="Nordic Star"):
    context = CreationContext(actor=actor, scope_name=scope_name)
    return service.create(template.template_id, context, COMPLETE_DATA if data is None else data)


def pending_submission(service, template, users, data=None):
    """A submission taken through submit and start_signing."""
    submission = new_submission(service, template, users["crew"], data)
    service.submit(submission.id, users["crew"])
    return service.start_signing(submission.id, users["crew"])


def sign(service, submission_id, order, signer):
    return service.sign(submission_id, order, signer, SignatureMethod.PIN, pin=PIN)
