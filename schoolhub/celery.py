"""Celery application configuration"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'schoolhub.settings')

app = Celery('schoolhub')

# CELERY_* settings from Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
