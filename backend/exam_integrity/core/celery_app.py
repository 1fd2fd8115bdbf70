from celery import Celery
from kombu import Queue
from exam_integrity.core.config import settings
import logging

logging.getLogger('celery.backends.redis').setLevel(logging.ERROR)

celery_app = Celery(
    "exam_integrity_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        'exam_integrity.tasks.notifications',
        'exam_integrity.tasks.maintenance',
    ]
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_default_queue='default',
    task_queues=(
        Queue('default'),
        Queue('notifications'),
        Queue('maintenance'),
    ),
    task_routes={
        'send_submission_notice': {'queue': 'notifications'},
        'release_due_results': {'queue': 'notifications'},
        'expire_stale_sessions': {'queue': 'maintenance'},
    },

    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,

    task_soft_time_limit=120,
    task_time_limit=300,

    result_expires=3600,
    broker_connection_retry_on_startup=True,

    task_default_retry_delay=60,
    task_max_retries=3,

    beat_schedule={
        'release-due-results': {
            'task': 'release_due_results',
            'schedule': 60.0,
        },
        'expire-stale-sessions': {
            'task': 'expire_stale_sessions',
            'schedule': 300.0,
        },
    },
)

if __name__ == '__main__':
    celery_app.start()
