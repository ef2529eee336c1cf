from celery import Celery
from orderhub.core.config import settings
import sys

celery_app = Celery(
    "orderhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "orderhub.workers.celery_tasks.payment_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
)

# Windows-specific configuration
if sys.platform == 'win32':
    celery_app.conf.update(
        worker_pool='threads',
        worker_concurrency=4
    )

celery_app.conf.beat_schedule = {
    'reconcile-stale-payments': {
        'task': 'orderhub.workers.celery_tasks.payment_tasks.reconcile_stale_payments',
        'schedule': 600.0,  # Every 10 minutes
    },
}
