# coopbus/dividends/services.py

"""
Dividend Distribution Engine.

Turns a period's surplus into a patronage-weighted payout plan. The tenant's
cooperative model picks whose patronage counts:

PASSENGER CO-OP: customer members, patronage is trips taken.
WORKER CO-OP: driver members, patronage is trips driven.
HYBRID CO-OP: the dividend pool is split 50/50 and each half is shared out
by the passenger and worker rules respectively.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coopbus.allocation.services import validate_percentages
from coopbus.core.db import get_db
from coopbus.dividends.exceptions import (
    DistributionNotFoundException, DistributionStatusException,
    DuplicateDistributionPeriodException, InvalidDividendPeriodException,
)
from coopbus.dividends.models import (
    DistributionStatus, DividendDistribution, DividendScheduleSettings, MemberDividend,
    PaymentMethod, PaymentStatus,
)
from coopbus.dividends.repository import DividendRepository
from coopbus.dividends.schemas import (
    DistributionPlan, DividendCalculationResult, DividendSummary, MemberDividendPlan,
    ScheduleSettingsUpdate,
)
from coopbus.operations.models import CooperativeModel
from coopbus.utils.logger import get_logger
from coopbus.utils.money import HUNDRED, ZERO, floor_money, percent_of, round_money, to_decimal

logger = get_logger(__name__)

HYBRID_CUSTOMER_SHARE = Decimal("0.5")

PatronageRows = List[Tuple[int, str, Optional[str], int]]


def get_dividend_repository(db: Session = Depends(get_db)) -> DividendRepository:
    """Dependency to get DividendRepository instance."""
    return DividendRepository(db)


def apportion(rows: PatronageRows, pool: Decimal, member_type: str) -> List[MemberDividendPlan]:
    """
    Share a pool by patronage.

    Each member receives trips / total_trips of the pool rounded to cents.
    Members with no trips never appear in rows.
    """
    total = sum(int(row[3]) for row in rows)
    if total == 0:
        return []

    plans = []
    for member_id, membership_number, member_name, trips in rows:
        share = Decimal(int(trips)) / Decimal(total)
        plans.append(MemberDividendPlan(
            member_id=member_id,
            member_name=member_name,
            membership_number=membership_number,
            member_type=member_type,
            patronage_value=int(trips),
            patronage_percentage=round_money(share * HUNDRED),
            dividend_amount=round_money(share * pool),
        ))
    return plans


class DividendService:
    """Calculates, stores and pays out dividend distributions"""

    def __init__(self, repo: DividendRepository = Depends(get_dividend_repository)):
        self.repo = repo
        self._strategies: Dict[str, Callable[..., List[MemberDividendPlan]]] = {
            CooperativeModel.PASSENGER.value: self._passenger_dividends,
            CooperativeModel.WORKER.value: self._worker_dividends,
            CooperativeModel.HYBRID.value: self._hybrid_dividends,
        }

    # === Patronage strategies ===

    def _passenger_dividends(
        self, tenant_id: int, period_start: date, period_end: date, pool: Decimal
    ) -> List[MemberDividendPlan]:
        rows = self.repo.get_passenger_patronage(tenant_id, period_start, period_end)
        return apportion(rows, pool, "customer")

    def _worker_dividends(
        self, tenant_id: int, period_start: date, period_end: date, pool: Decimal
    ) -> List[MemberDividendPlan]:
        rows = self.repo.get_driver_patronage(tenant_id, period_start, period_end)
        return apportion(rows, pool, "driver")

    def _hybrid_dividends(
        self, tenant_id: int, period_start: date, period_end: date, pool: Decimal
    ) -> List[MemberDividendPlan]:
        customer_pool = round_money(pool * HYBRID_CUSTOMER_SHARE)
        driver_pool = pool - customer_pool
        logger.debug(
            "Hybrid dividend split",
            tenant_id=tenant_id, customer_pool=str(customer_pool), driver_pool=str(driver_pool),
        )
        return (
            self._passenger_dividends(tenant_id, period_start, period_end, customer_pool)
            + self._worker_dividends(tenant_id, period_start, period_end, driver_pool)
        )

    # === Calculation ===

    def calculate_dividends(
        self,
        tenant_id: int,
        period_start: date,
        period_end: date,
        reserves_percent: Decimal = Decimal("20"),
        business_percent: Decimal = Decimal("30"),
        dividend_percent: Decimal = Decimal("50"),
    ) -> DividendCalculationResult:
        """
        Calculate the payout plan of a period without saving it.

        The period surplus is the sum of gross_surplus over the tenant's
        service cost records in the period (inclusive). A period with no
        positive surplus yields an empty plan.

        Raises:
            InvalidAllocationPercentagesException: Percentages do not sum to 100
            InvalidDividendPeriodException: period_end is before period_start
            DuplicateDistributionPeriodException: The period already has a distribution
        """
        validate_percentages(reserves_percent, business_percent, dividend_percent)
        if period_end < period_start:
            raise InvalidDividendPeriodException(period_start, period_end)
        self._ensure_period_free(tenant_id, period_start, period_end)

        cooperative_model = self.repo.get_cooperative_model(tenant_id) or CooperativeModel.PASSENGER.value
        total_revenue, total_costs, gross_surplus = (
            round_money(value) for value in self.repo.get_period_totals(tenant_id, period_start, period_end)
        )

        logger.info(
            "Calculating dividends",
            tenant_id=tenant_id,
            cooperative_model=cooperative_model,
            period_start=str(period_start),
            period_end=str(period_end),
            gross_surplus=str(gross_surplus),
        )

        if gross_surplus > ZERO:
            reserves_amount = floor_money(percent_of(gross_surplus, reserves_percent))
            business_amount = floor_money(percent_of(gross_surplus, business_percent))
            dividend_pool = gross_surplus - reserves_amount - business_amount
            strategy = self._strategies.get(cooperative_model, self._passenger_dividends)
            member_dividends = strategy(tenant_id, period_start, period_end, dividend_pool)
        else:
            reserves_amount = business_amount = dividend_pool = ZERO
            member_dividends = []

        eligible_members = len(member_dividends)
        total_patronage = sum(d.patronage_value for d in member_dividends)
        total_allocated = sum((d.dividend_amount for d in member_dividends), ZERO)

        result = DividendCalculationResult(
            distribution=DistributionPlan(
                tenant_id=tenant_id,
                period_start=period_start,
                period_end=period_end,
                cooperative_model=cooperative_model,
                total_revenue=total_revenue,
                total_costs=total_costs,
                gross_surplus=gross_surplus,
                reserves_amount=reserves_amount,
                business_costs_amount=business_amount,
                dividend_pool=dividend_pool,
                eligible_members=eligible_members,
                total_member_patronage=total_patronage,
            ),
            member_dividends=member_dividends,
            summary=DividendSummary(
                total_eligible_members=eligible_members,
                total_patronage=total_patronage,
                total_dividend_pool=dividend_pool,
                total_allocated=total_allocated,
                average_dividend_per_member=(
                    round_money(dividend_pool / eligible_members) if eligible_members else ZERO
                ),
                average_dividend_per_trip=(
                    round_money(dividend_pool / total_patronage) if total_patronage else ZERO
                ),
            ),
        )

        logger.info(
            "Dividends calculated",
            tenant_id=tenant_id,
            dividend_pool=str(dividend_pool),
            eligible_members=eligible_members,
            total_patronage=total_patronage,
        )
        return result

    def save_dividend_distribution(self, calculation: DividendCalculationResult) -> int:
        """
        Persist a calculated plan and return the distribution id.

        The header is stored as calculated and every member row as pending.

        Raises:
            DuplicateDistributionPeriodException: The period already has a distribution
        """
        plan = calculation.distribution
        self._ensure_period_free(plan.tenant_id, plan.period_start, plan.period_end)

        distribution = DividendDistribution(
            tenant_id=plan.tenant_id,
            period_start=plan.period_start,
            period_end=plan.period_end,
            cooperative_model=plan.cooperative_model,
            total_revenue=plan.total_revenue,
            total_costs=plan.total_costs,
            gross_surplus=plan.gross_surplus,
            reserves_amount=plan.reserves_amount,
            business_costs_amount=plan.business_costs_amount,
            dividend_pool=plan.dividend_pool,
            eligible_members=plan.eligible_members,
            total_member_patronage=plan.total_member_patronage,
            status=DistributionStatus.CALCULATED.value,
            calculated_at=datetime.now(timezone.utc),
        )
        member_rows = [
            MemberDividend(
                member_id=d.member_id,
                tenant_id=plan.tenant_id,
                member_type=d.member_type,
                patronage_value=d.patronage_value,
                patronage_percentage=d.patronage_percentage,
                dividend_amount=d.dividend_amount,
                payment_status=PaymentStatus.PENDING.value,
            )
            for d in calculation.member_dividends
        ]

        try:
            self.repo.create_distribution(distribution, member_rows)
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            logger.warning(
                "Distribution period taken concurrently",
                tenant_id=plan.tenant_id, period_start=str(plan.period_start), error=str(e),
            )
            raise DuplicateDistributionPeriodException(plan.tenant_id, plan.period_start, plan.period_end) from e
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to save dividend distribution", tenant_id=plan.tenant_id, error=str(e))
            raise

        logger.info(
            "Dividend distribution saved",
            distribution_id=distribution.id,
            tenant_id=plan.tenant_id,
            member_count=len(member_rows),
        )
        return distribution.id

    # === Lifecycle ===

    def mark_distribution_paid(
        self, distribution_id: int, payment_method: str = PaymentMethod.ACCOUNT_CREDIT.value
    ) -> DividendDistribution:
        """
        Pay out a distribution.

        The distribution becomes distributed and every pending member row
        becomes paid with today's date, in one commit.

        Raises:
            DistributionNotFoundException: Unknown distribution
            DistributionStatusException: Already distributed or cancelled
        """
        distribution = self.get_distribution(distribution_id)
        if distribution.status not in (DistributionStatus.PENDING.value, DistributionStatus.CALCULATED.value):
            raise DistributionStatusException(distribution_id, distribution.status, "pay out")

        payment_method = PaymentMethod(payment_method).value
        try:
            today = date.today()
            paid = 0
            for dividend in distribution.member_dividends:
                if dividend.payment_status == PaymentStatus.PENDING.value:
                    dividend.payment_status = PaymentStatus.PAID.value
                    dividend.payment_method = payment_method
                    dividend.payment_date = today
                    paid += 1
            distribution.status = DistributionStatus.DISTRIBUTED.value
            distribution.distributed_at = datetime.now(timezone.utc)
            self.repo.commit()
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to mark distribution paid", distribution_id=distribution_id, error=str(e))
            raise

        logger.info(
            "Distribution marked as paid",
            distribution_id=distribution_id, payment_method=payment_method, members_paid=paid,
        )
        return distribution

    def cancel_distribution(self, distribution_id: int, reason: Optional[str] = None) -> DividendDistribution:
        """Cancel a distribution that has not been paid out"""
        distribution = self.get_distribution(distribution_id)
        if distribution.status in (DistributionStatus.DISTRIBUTED.value, DistributionStatus.CANCELLED.value):
            raise DistributionStatusException(distribution_id, distribution.status, "cancel")

        try:
            for dividend in distribution.member_dividends:
                if dividend.payment_status == PaymentStatus.PENDING.value:
                    dividend.payment_status = PaymentStatus.CANCELLED.value
            distribution.status = DistributionStatus.CANCELLED.value
            if reason:
                distribution.notes = reason
            self.repo.commit()
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to cancel distribution", distribution_id=distribution_id, error=str(e))
            raise

        logger.info("Distribution cancelled", distribution_id=distribution_id)
        return distribution

    # === Reporting ===

    def get_distribution(self, distribution_id: int) -> DividendDistribution:
        distribution = self.repo.get_distribution(distribution_id)
        if distribution is None:
            raise DistributionNotFoundException(distribution_id)
        return distribution

    def get_distribution_for_period(
        self, tenant_id: int, period_start: date, period_end: date
    ) -> Optional[DividendDistribution]:
        return self.repo.get_distribution_for_period(tenant_id, period_start, period_end)

    def get_distribution_history(self, tenant_id: int, limit: int = 12) -> List[DividendDistribution]:
        return self.repo.get_distribution_history(tenant_id, limit=limit)

    def get_member_dividend_history(self, member_id: int, limit: int = 12) -> List[MemberDividend]:
        return self.repo.get_member_dividends(member_id, limit=limit)

    # === Schedule settings ===

    def get_schedule_settings(self, tenant_id: int) -> Optional[DividendScheduleSettings]:
        return self.repo.get_schedule_settings(tenant_id)

    def update_schedule_settings(
        self, tenant_id: int, update: ScheduleSettingsUpdate
    ) -> DividendScheduleSettings:
        """Create or partially update a tenant's scheduler settings"""
        changes = update.model_dump(exclude_unset=True)
        if "frequency" in changes and changes["frequency"] is not None:
            changes["frequency"] = update.frequency.value

        settings_row = self.repo.get_schedule_settings(tenant_id)
        try:
            if settings_row is None:
                settings_row = DividendScheduleSettings(
                    tenant_id=tenant_id,
                    enabled=True,
                    frequency="monthly",
                    reserves_percent=Decimal("20"),
                    business_percent=Decimal("30"),
                    dividend_percent=Decimal("50"),
                    auto_distribute=False,
                )
                self.repo.create_schedule_settings(settings_row)

            for field, value in changes.items():
                if value is not None or field == "notification_email":
                    setattr(settings_row, field, value)

            validate_percentages(
                to_decimal(settings_row.reserves_percent),
                to_decimal(settings_row.business_percent),
                to_decimal(settings_row.dividend_percent),
            )
            self.repo.commit()
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to update dividend schedule settings", tenant_id=tenant_id, error=str(e))
            raise

        logger.info("Dividend schedule settings updated", tenant_id=tenant_id, changes=list(changes))
        return settings_row

    def list_enabled_schedule_settings(self) -> List[DividendScheduleSettings]:
        return self.repo.list_enabled_schedule_settings()

    def _ensure_period_free(self, tenant_id: int, period_start: date, period_end: date) -> None:
        existing = self.repo.get_distribution_for_period(tenant_id, period_start, period_end)
        if existing is not None:
            raise DuplicateDistributionPeriodException(tenant_id, period_start, period_end, existing.id)
