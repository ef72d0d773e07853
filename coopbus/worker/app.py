### coopbus/worker/app.py

"""
Celery application for background work.

The dividend scheduler adds its beat entry to this app's configuration
when it is started.
"""

# Third party imports
from celery import Celery

# Local imports
from coopbus.core.config import settings
from coopbus.dividends.tasks import scheduler
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

# Create Celery Instance
app = Celery("coopbus_worker")

# Configure celery from separate config file
app.config_from_object("coopbus.worker.config")

# Auto discover tasks from different modules
app.autodiscover_tasks([
    "coopbus.dividends",
])

# Register the dividend beat entry from settings
scheduler.celery_app = app
if settings.dividend_scheduler_enabled:
    scheduler.start(settings.dividend_scheduler_cron)
else:
    logger.info("Dividend scheduler disabled by configuration")

if __name__ == "__main__":
    app.start()
