# coopbus/dividends/scheduler.py

"""
Automated dividend runs.

The scheduler registers one Celery beat entry from a 5-field cron expression.
Each run works through every tenant with enabled schedule settings, settles
the period that just closed, and optionally pays it out straight away.
"""

import threading
from datetime import date
from typing import Optional, Tuple

from celery.schedules import ParseException, crontab
from dateutil.relativedelta import relativedelta

from coopbus.core.db import SessionLocal
from coopbus.dividends.exceptions import InvalidCronExpressionException
from coopbus.dividends.models import (
    DistributionStatus, DividendScheduleSettings, PaymentMethod, ScheduleFrequency,
)
from coopbus.dividends.repository import DividendRepository
from coopbus.dividends.schemas import SchedulerRunResult
from coopbus.dividends.services import DividendService
from coopbus.utils.logger import get_logger
from coopbus.utils.money import to_decimal

logger = get_logger(__name__)

BEAT_ENTRY_NAME = "dividend-scheduler"
SCHEDULED_TASK_NAME = "coopbus.dividends.tasks.run_scheduled_dividends"


def parse_cron(expression: str) -> crontab:
    """
    Build a crontab from "minute hour day-of-month month day-of-week".

    Raises:
        InvalidCronExpressionException: Wrong field count or unparsable field
    """
    fields = (expression or "").split()
    if len(fields) != 5:
        raise InvalidCronExpressionException(expression, f"expected 5 fields, got {len(fields)}")

    minute, hour, day_of_month, month_of_year, day_of_week = fields
    try:
        return crontab(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
        )
    except (ValueError, ParseException) as e:
        raise InvalidCronExpressionException(expression, str(e)) from e


def previous_period(frequency: str, today: date) -> Tuple[date, date]:
    """First and last day of the month or quarter before the one holding today"""
    if frequency == ScheduleFrequency.QUARTERLY.value:
        quarter_start = date(today.year, ((today.month - 1) // 3) * 3 + 1, 1)
        start = quarter_start - relativedelta(months=3)
        return start, quarter_start - relativedelta(days=1)

    month_start = today.replace(day=1)
    start = month_start - relativedelta(months=1)
    return start, month_start - relativedelta(days=1)


class DividendScheduler:
    """Owns the beat registration and the run lock of automated dividends"""

    def __init__(self, session_factory=SessionLocal, celery_app=None):
        self.session_factory = session_factory
        self.celery_app = celery_app
        self.cron_expression: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def is_started(self) -> bool:
        return self.cron_expression is not None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def start(self, cron_expression: str) -> crontab:
        """Validate the expression and register the beat entry"""
        schedule = parse_cron(cron_expression)
        if self.is_started:
            logger.warning(
                "Dividend scheduler already started, replacing schedule",
                previous=self.cron_expression, cron=cron_expression,
            )

        if self.celery_app is not None:
            self.celery_app.conf.beat_schedule[BEAT_ENTRY_NAME] = {
                "task": SCHEDULED_TASK_NAME,
                "schedule": schedule,
            }
        self.cron_expression = cron_expression
        logger.info("Dividend scheduler started", cron=cron_expression)
        return schedule

    def stop(self) -> None:
        if self.celery_app is not None:
            self.celery_app.conf.beat_schedule.pop(BEAT_ENTRY_NAME, None)
        if self.is_started:
            logger.info("Dividend scheduler stopped", cron=self.cron_expression)
        self.cron_expression = None

    def run_once(self, today: Optional[date] = None) -> SchedulerRunResult:
        """
        Process every enabled tenant once.

        A run that finds another run in progress returns immediately with
        skipped=True instead of waiting.
        """
        today = today or date.today()
        if not self._lock.acquire(blocking=False):
            logger.warning("Dividend run already in progress, skipping", run_date=str(today))
            return SchedulerRunResult(run_date=today, skipped=True)

        result = SchedulerRunResult(run_date=today)
        db = self.session_factory()
        try:
            service = DividendService(DividendRepository(db))
            schedule_settings = service.list_enabled_schedule_settings()
            logger.info("Dividend run started", run_date=str(today), tenants=len(schedule_settings))

            for tenant_settings in schedule_settings:
                tenant_id = tenant_settings.tenant_id
                result.tenants_processed += 1
                try:
                    self._process_tenant(service, tenant_settings, today, result)
                except Exception as e:
                    db.rollback()
                    logger.error(
                        "Dividend run failed for tenant", tenant_id=tenant_id, error=str(e), exc_info=True
                    )
                    result.tenants_failed.append(tenant_id)

            logger.info(
                "Dividend run completed",
                run_date=str(today),
                created=len(result.distributions_created),
                paid=len(result.distributions_paid),
                skipped=len(result.tenants_skipped),
                failed=len(result.tenants_failed),
            )
            return result
        finally:
            db.close()
            self._lock.release()

    def _process_tenant(
        self,
        service: DividendService,
        tenant_settings: DividendScheduleSettings,
        today: date,
        result: SchedulerRunResult,
    ) -> None:
        tenant_id = tenant_settings.tenant_id
        period_start, period_end = previous_period(tenant_settings.frequency, today)

        existing = service.get_distribution_for_period(tenant_id, period_start, period_end)
        if existing is not None:
            # A distribution saved by an earlier run whose payout failed
            if tenant_settings.auto_distribute and existing.status == DistributionStatus.CALCULATED.value:
                logger.info(
                    "Retrying payout of unpaid distribution",
                    tenant_id=tenant_id, distribution_id=existing.id,
                )
                service.mark_distribution_paid(existing.id, PaymentMethod.ACCOUNT_CREDIT.value)
                result.distributions_paid.append(existing.id)
                return

            logger.info(
                "Dividend period already settled",
                tenant_id=tenant_id, period_start=str(period_start), period_end=str(period_end),
            )
            result.tenants_skipped.append(tenant_id)
            return

        calculation = service.calculate_dividends(
            tenant_id,
            period_start,
            period_end,
            reserves_percent=to_decimal(tenant_settings.reserves_percent),
            business_percent=to_decimal(tenant_settings.business_percent),
            dividend_percent=to_decimal(tenant_settings.dividend_percent),
        )
        distribution_id = service.save_dividend_distribution(calculation)
        result.distributions_created.append(distribution_id)

        if tenant_settings.auto_distribute:
            try:
                service.mark_distribution_paid(distribution_id, PaymentMethod.ACCOUNT_CREDIT.value)
            except Exception:
                logger.warning(
                    "Dividend distribution saved but left unpaid, payout is retried on the next run",
                    tenant_id=tenant_id, distribution_id=distribution_id,
                )
                raise
            result.distributions_paid.append(distribution_id)

        if tenant_settings.notification_email:
            # Mail delivery is handled outside this service
            logger.info(
                "Dividend notification",
                tenant_id=tenant_id,
                email=tenant_settings.notification_email,
                distribution_id=distribution_id,
                dividend_pool=str(calculation.distribution.dividend_pool),
                auto_distributed=tenant_settings.auto_distribute,
            )
