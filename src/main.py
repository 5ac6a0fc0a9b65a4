import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from create_tables import create_tables
from database import SessionLocal
from settings import SEED_DEMO_DATA
from utils.logger import setup_logger

from modules.auth.models.user import User
from modules.auth.services.auth_service import AuthService
from modules.forms.job import start_effect_retry_job
from modules.forms.models.template import FormTemplate
from modules.forms.services.template_registry import TemplateRegistry
from modules.auth.controllers.auth_controller import router as auth_router
from modules.forms.controllers.template_controller import router as template_router
from modules.forms.controllers.submission_controller import router as submission_router
from modules.notifications.controllers.notification_controller import router as notification_router

logger = setup_logger(__name__)

DEMO_USERS = [
    ("Captain Erik Holm", "master@fleet.example", "master123", "master", "1234"),
    ("Chief Officer Lena Berg", "chief@fleet.example", "chief123", "chief_officer", "2345"),
    ("DPA Maria Costa", "dpa@fleet.example", "dpa123", "dpa", "3456"),
    ("AB Tom Reyes", "crew@fleet.example", "crew123", "crew", None),
]

PRE_DEPARTURE_SCHEMA = {
    "fields": [
        {"id": "port", "type": "text", "label": "Port of departure", "required": True},
        {"id": "departure_date", "type": "date", "label": "Departure date", "required": True},
        {"id": "berth", "type": "text", "label": "Berth"},
        {"id": "steering_tested", "type": "yes_no", "label": "Steering gear tested", "required": True},
        {"id": "crew_count", "type": "number", "label": "Crew on board", "min": 1, "required": True},
        {"id": "remarks", "type": "textarea", "label": "Remarks", "max_length": 2000},
    ]
}

PRE_DEPARTURE_SIGNERS = [
    {"role": "chief_officer", "order": 1},
    {"role": "master", "order": 2},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting SMS forms service")
    create_tables()
    if SEED_DEMO_DATA:
        _create_demo_data()
    scheduler = start_effect_retry_job()
    yield
    scheduler.shutdown(wait=False)
    logger.info("SMS forms service stopped")


def _create_demo_data():
    """Seed demo users and a pre-departure checklist."""
    with SessionLocal() as session:
        if session.query(User).count() > 0:
            logger.info("Demo data already present")
            return

        for name, email, password, role, pin in DEMO_USERS:
            session.add(User(
                name=name,
                email=email,
                password_hash=AuthService.get_password_hash(password),
                role=role,
                signature_pin_hash=AuthService.get_pin_hash(pin) if pin else None,
                is_active=True
            ))
        session.commit()

        if session.query(FormTemplate).count() == 0:
            TemplateRegistry(session).create_template(
                company_id=1,
                template_code="PDC",
                name="Pre-Departure Checklist",
                form_schema=PRE_DEPARTURE_SCHEMA,
                required_signers=PRE_DEPARTURE_SIGNERS,
            )

        logger.info("Demo data created:")
        for name, email, password, role, _ in DEMO_USERS:
            logger.info(f"   - {role}: {email} / {password}")


app = FastAPI(
    title="SMS Forms Signature Workflow",
    description="ISM/SMS compliance forms: submission, ordered signatures, rejection and amendment",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Accept",
        "Accept-Language",
        "Content-Language",
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "Origin",
    ],
    max_age=86400,
)
# Routers
app.include_router(auth_router)
app.include_router(template_router)
app.include_router(submission_router)
app.include_router(notification_router, prefix="/notifications", tags=["notifications"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
