"""
Celery application instance and configuration.

Alternative to the daemon: beat ticks every worker every 5 minutes and the
ingestion task fans out to the enrichment tasks when it stored bookmarks.
"""

from celery import Celery
from celery.schedules import crontab

from bookmark_hub.core.config import settings

# Create Celery application
celery_app = Celery(
    "bookmark_hub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    result_expires=3600,  # 1 hour
    worker_prefetch_multiplier=1,
)

# Celery Beat Schedule (timer fallback for every worker)
celery_app.conf.beat_schedule = {
    'drain-task-queue': {
        'task': 'ingestion.drain_queue',
        'schedule': crontab(minute='*/5'),
        'options': {'queue': 'ingestion'},
    },
    'tag-bookmarks': {
        'task': 'enrichment.tag_bookmarks',
        'schedule': crontab(minute='*/5'),
        'options': {'queue': 'enrichment'},
    },
    'summarize-bookmarks': {
        'task': 'enrichment.summarize_bookmarks',
        'schedule': crontab(minute='*/5'),
        'options': {'queue': 'enrichment'},
    },
    'embed-bookmarks': {
        'task': 'enrichment.embed_bookmarks',
        'schedule': crontab(minute='*/5'),
        'options': {'queue': 'enrichment'},
    },
}

# Task routing
celery_app.conf.task_routes = {
    'ingestion.*': {'queue': 'ingestion'},
    'enrichment.*': {'queue': 'enrichment'},
}

# Auto-discover tasks from bookmark_hub.tasks
celery_app.autodiscover_tasks(['bookmark_hub.tasks'])
