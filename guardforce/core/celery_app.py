import sys
from celery import Celery
from celery.schedules import crontab
from guardforce.core.config import settings

celery_app = Celery(
    "guardforce_backend",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "guardforce.workers.celery_tasks.approval_tasks",
        "guardforce.workers.celery_tasks.billing_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    # eager mode runs tasks inline (tests, single-process dev)
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_routes={
        "guardforce.workers.celery_tasks.approval_tasks.*": {"queue": "notifications"},
        "guardforce.workers.celery_tasks.billing_tasks.*": {"queue": "billing"},
    },
)

if sys.platform == 'win32':
    celery_app.conf.update(
        worker_pool='threads',
        worker_concurrency=4
    )

celery_app.conf.beat_schedule = {
    "mark-overdue-invoices": {
        "task": "guardforce.workers.celery_tasks.billing_tasks.mark_overdue_invoices",
        "schedule": crontab(hour=1, minute=0),
    },
}
