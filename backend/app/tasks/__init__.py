"""
Celery application factory.
"""

from celery import Celery

celery_app = Celery("workflows")
celery_app.config_from_object("celeryconfig")

celery_app.autodiscover_tasks([
    "app.tasks.workflow_tasks",
])
