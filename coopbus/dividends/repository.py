# coopbus/dividends/repository.py

"""
Data Access Layer for the Dividends module.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import select, func, desc, distinct
from sqlalchemy.orm import Session

from coopbus.dividends.models import DividendDistribution, DividendScheduleSettings, MemberDividend
from coopbus.members.models import CooperativeMember
from coopbus.operations.models import Booking, BookingStatus, Customer, Driver, Tenant
from coopbus.surplus.models import ServiceCostRecord
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

PASSENGER_TRIP_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.BOARDED.value)
DRIVER_TRIP_STATUSES = (
    BookingStatus.CONFIRMED.value, BookingStatus.BOARDED.value, BookingStatus.COMPLETED.value,
)


class DividendRepository:
    """Database operations for distributions, member dividends and schedule settings"""

    def __init__(self, db: Session):
        self.db = db

    # === Period figures ===

    def get_cooperative_model(self, tenant_id: int) -> Optional[str]:
        tenant = self.db.get(Tenant, tenant_id)
        return tenant.cooperative_model if tenant is not None else None

    def get_period_totals(self, tenant_id: int, period_start: date, period_end: date):
        """Revenue, cost and gross surplus of every service in the period"""
        stmt = select(
            func.coalesce(func.sum(ServiceCostRecord.total_revenue), 0),
            func.coalesce(func.sum(ServiceCostRecord.total_cost), 0),
            func.coalesce(func.sum(ServiceCostRecord.gross_surplus), 0),
        ).where(
            ServiceCostRecord.tenant_id == tenant_id,
            ServiceCostRecord.service_date >= period_start,
            ServiceCostRecord.service_date <= period_end,
        )
        return self.db.execute(stmt).one()

    def get_passenger_patronage(self, tenant_id: int, period_start: date, period_end: date):
        """
        Trips taken per active, dividend-eligible customer member.

        Rows are (member_id, membership_number, member_name, trips); members
        without trips in the period are left out.
        """
        trips = func.count(distinct(Booking.id))
        stmt = (
            select(
                CooperativeMember.id,
                CooperativeMember.membership_number,
                Customer.name,
                trips.label("trips"),
            )
            .join(Customer, Customer.id == CooperativeMember.customer_id)
            .join(Booking, Booking.customer_id == CooperativeMember.customer_id)
            .where(
                CooperativeMember.tenant_id == tenant_id,
                CooperativeMember.is_active.is_(True),
                CooperativeMember.dividend_eligible.is_(True),
                Booking.service_date >= period_start,
                Booking.service_date <= period_end,
                Booking.booking_status.in_(PASSENGER_TRIP_STATUSES),
            )
            .group_by(CooperativeMember.id, CooperativeMember.membership_number, Customer.name)
            .having(trips > 0)
            .order_by(desc("trips"), CooperativeMember.id)
        )
        return self.db.execute(stmt).all()

    def get_driver_patronage(self, tenant_id: int, period_start: date, period_end: date):
        """Trips driven per active, dividend-eligible driver member who is still an active driver"""
        trips = func.count(distinct(Booking.id))
        stmt = (
            select(
                CooperativeMember.id,
                CooperativeMember.membership_number,
                Driver.name,
                trips.label("trips"),
            )
            .join(Driver, Driver.id == CooperativeMember.driver_id)
            .join(Booking, Booking.driver_id == CooperativeMember.driver_id)
            .where(
                CooperativeMember.tenant_id == tenant_id,
                CooperativeMember.is_active.is_(True),
                CooperativeMember.dividend_eligible.is_(True),
                Driver.is_active.is_(True),
                Booking.service_date >= period_start,
                Booking.service_date <= period_end,
                Booking.booking_status.in_(DRIVER_TRIP_STATUSES),
            )
            .group_by(CooperativeMember.id, CooperativeMember.membership_number, Driver.name)
            .having(trips > 0)
            .order_by(desc("trips"), CooperativeMember.id)
        )
        return self.db.execute(stmt).all()

    # === Distributions ===

    def get_distribution(self, distribution_id: int) -> Optional[DividendDistribution]:
        return self.db.get(DividendDistribution, distribution_id)

    def get_distribution_for_period(
        self, tenant_id: int, period_start: date, period_end: date
    ) -> Optional[DividendDistribution]:
        stmt = select(DividendDistribution).where(
            DividendDistribution.tenant_id == tenant_id,
            DividendDistribution.period_start == period_start,
            DividendDistribution.period_end == period_end,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_distribution(
        self, distribution: DividendDistribution, member_dividends: List[MemberDividend]
    ) -> DividendDistribution:
        """Insert a distribution header and its member rows"""
        self.db.add(distribution)
        self.db.flush()
        for dividend in member_dividends:
            dividend.distribution_id = distribution.id
            self.db.add(dividend)
        self.db.flush()
        logger.info(
            "Dividend distribution created",
            distribution_id=distribution.id,
            tenant_id=distribution.tenant_id,
            member_count=len(member_dividends),
        )
        return distribution

    def get_distribution_history(self, tenant_id: int, limit: int = 12) -> List[DividendDistribution]:
        stmt = (
            select(DividendDistribution)
            .where(DividendDistribution.tenant_id == tenant_id)
            .order_by(desc(DividendDistribution.period_end))
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_member_dividends(self, member_id: int, limit: int = 12) -> List[MemberDividend]:
        stmt = (
            select(MemberDividend)
            .join(DividendDistribution, DividendDistribution.id == MemberDividend.distribution_id)
            .where(MemberDividend.member_id == member_id)
            .order_by(desc(DividendDistribution.period_end))
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    # === Schedule settings ===

    def get_schedule_settings(self, tenant_id: int) -> Optional[DividendScheduleSettings]:
        stmt = select(DividendScheduleSettings).where(DividendScheduleSettings.tenant_id == tenant_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_schedule_settings(self, settings: DividendScheduleSettings) -> DividendScheduleSettings:
        self.db.add(settings)
        self.db.flush()
        return settings

    def list_enabled_schedule_settings(self) -> List[DividendScheduleSettings]:
        stmt = (
            select(DividendScheduleSettings)
            .where(DividendScheduleSettings.enabled.is_(True))
            .order_by(DividendScheduleSettings.tenant_id)
        )
        return list(self.db.execute(stmt).scalars().all())

    # === Session Operations ===

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
