"""
Celery configuration for background workflow execution.

Loaded by `celery_app.config_from_object("celeryconfig")` in app/tasks/__init__.py.
Broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Steps call external systems; a redelivered task would repeat them
task_acks_late = False

worker_prefetch_multiplier = 1

# Upper bound for one execution (outbound calls may each take HTTP_TIMEOUT_SECONDS)
task_soft_time_limit = 900
task_time_limit = 960

# Executions are never retried automatically
task_max_retries = 0

result_expires = 86400

worker_max_tasks_per_child = 200
worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
#   celery -A app.tasks worker -Q workflows

task_routes = {
    "app.tasks.workflow_tasks.*": {"queue": "workflows"},
}

task_default_queue = "default"
