"""
Celery configuration for the chat service.

Celery runs the periodic maintenance jobs of the chat app (invitation
expiry). Redis is both the message broker and result backend; the beat
schedule is declared in settings.CELERY_BEAT_SCHEDULE and stored by
django-celery-beat's DatabaseScheduler.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
