from celery import Celery
from celery.schedules import crontab
from biopeak.config import REDIS_URL

# Add SSL certificate requirements to Redis URL if using rediss://
if REDIS_URL and REDIS_URL.startswith('rediss://'):
    redis_url = f"{REDIS_URL}?ssl_cert_reqs=CERT_NONE"
else:
    redis_url = REDIS_URL

celery_app = Celery(
    'biopeak',
    broker=redis_url,
    backend=redis_url,
    broker_connection_retry_on_startup=True,
    include=['biopeak.core.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        'process-backfill-jobs': {
            'task': 'biopeak.core.tasks.process_backfill_jobs',
            'schedule': crontab(minute='*/5'),
        },
        'recalculate-backfill-activities': {
            'task': 'biopeak.core.tasks.recalculate_backfill_activities',
            'schedule': crontab(minute=15),
        },
        'cleanup-stuck-backfills': {
            'task': 'biopeak.core.tasks.cleanup_stuck_backfills',
            'schedule': crontab(minute=45),
        },
    },
)
