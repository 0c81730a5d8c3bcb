"""Celery application instance for UGS Panel."""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ugs_panel.settings")

app = Celery("ugs_panel")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
