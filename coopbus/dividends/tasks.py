# coopbus/dividends/tasks.py

# Third party imports
from celery import shared_task

# Local imports
from coopbus.dividends.scheduler import DividendScheduler
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

scheduler = DividendScheduler()


@shared_task(bind=True, name="coopbus.dividends.tasks.run_scheduled_dividends")
def run_scheduled_dividends(self):
    """
    Settle the closed dividend period of every tenant with automation enabled.
    Runs on the beat entry registered by the dividend scheduler.
    """
    task_id = self.request.id
    logger.info("Starting scheduled dividend run", task_id=task_id)
    try:
        result = scheduler.run_once()
    except Exception as e:
        logger.error("Scheduled dividend run failed", task_id=task_id, error=str(e), exc_info=True)
        raise

    logger.info(
        "Scheduled dividend run finished",
        task_id=task_id,
        skipped=result.skipped,
        distributions_created=result.distributions_created,
        tenants_failed=result.tenants_failed,
    )
    return result.model_dump(mode="json")
