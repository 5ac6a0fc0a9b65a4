from apscheduler.schedulers.background import BackgroundScheduler

from database import SessionLocal
from modules.forms.services.effects import EffectDispatcher
from modules.notifications.services.notification_service import WorkflowNotificationSink
from settings import EFFECT_RETRY_INTERVAL_SECONDS
from utils.logger import setup_logger

logger = setup_logger(__name__)


def retry_pending_effects(session) -> int:
    dispatcher = EffectDispatcher(session, WorkflowNotificationSink(session))
    return dispatcher.retry_pending()


def start_effect_retry_job() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()

    def job():
        with SessionLocal() as session:
            retry_pending_effects(session)

    scheduler.add_job(job, 'interval', seconds=EFFECT_RETRY_INTERVAL_SECONDS, max_instances=1, coalesce=True)
    scheduler.start()
    logger.info(f"Notification retry job started (every {EFFECT_RETRY_INTERVAL_SECONDS}s)")
    return scheduler
