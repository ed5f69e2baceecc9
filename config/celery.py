"""
Celery configuration for the Alcohol Explorer crawler.

Explorations are long-running, single-page-at-a-time jobs; they get their own
queue so that one worker processes one exploration at a time.
"""

import os
from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("alcohol_explorer")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "explore": {
        "exchange": "explore",
        "routing_key": "explore",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "explorer.tasks.run_exploration": {"queue": "explore"},
}

# One exploration per worker process
app.conf.worker_prefetch_multiplier = 1
