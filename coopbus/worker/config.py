### coopbus/worker/config.py

"""
Celery configuration settings

Broker and result backend live in Redis. The beat schedule starts empty and
is filled by the dividend scheduler.
"""

# Local imports
from coopbus.core.config import settings

# Broker and result backend configurations
broker_url = settings.celery_broker
result_backend = settings.celery_backend

# Task serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task settings
task_track_started = True
task_time_limit = 30 * 60 # 30 minutes
task_soft_time_limit = 25 * 60 # 25 minutes
worker_prefetch_multiplier = 1
task_acks_late = True

beat_schedule = {}

# Worker configuration
worker_hijack_root_logger = False
worker_log_color = False
