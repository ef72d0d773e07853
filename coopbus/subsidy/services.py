# coopbus/subsidy/services.py

"""
Subsidy Calculator.

Quotes how much of a route's surplus an under-loaded service may draw and
applies the draw against the route pool as one locked unit of work.
"""

from decimal import Decimal, ROUND_CEILING
from typing import Optional

from fastapi import Depends

from coopbus.surplus.exceptions import InsufficientSurplusException
from coopbus.surplus.models import (
    RouteSurplusPool, ServiceCostRecord, SurplusTransaction, SurplusTransactionType, SubsidySource,
)
from coopbus.surplus.schemas import ServiceContext
from coopbus.surplus.services import SurplusLedgerService
from coopbus.subsidy.schemas import SubsidyCalculation
from coopbus.utils.logger import get_logger
from coopbus.utils.money import ZERO, floor_money, percent_of, round_money, to_decimal

logger = get_logger(__name__)

DEFAULT_MAX_SURPLUS_PERCENT = Decimal("50")
DEFAULT_MAX_SERVICE_PERCENT = Decimal("30")
DEFAULT_MAX_ACCEPTABLE_FARE = Decimal("20")


def minimum_passengers(effective_cost: Decimal, max_acceptable_fare: Decimal) -> int:
    """Passengers needed to cover a cost when nobody pays more than the max fare"""
    if effective_cost <= ZERO:
        return 0
    return int((effective_cost / max_acceptable_fare).to_integral_value(rounding=ROUND_CEILING))


class SubsidyService:
    """Quotes and applies route surplus subsidies"""

    def __init__(self, ledger: SurplusLedgerService = Depends(SurplusLedgerService)):
        self.ledger = ledger

    def calculate_available_subsidy(
        self,
        route_id: int,
        service_cost: Decimal,
        max_surplus_percent: Decimal = DEFAULT_MAX_SURPLUS_PERCENT,
        max_service_percent: Decimal = DEFAULT_MAX_SERVICE_PERCENT,
        max_acceptable_fare: Decimal = DEFAULT_MAX_ACCEPTABLE_FARE,
    ) -> SubsidyCalculation:
        """
        Quote the subsidy a service could draw from its route pool.

        The subsidy is bounded by the pool (max_surplus_percent of what is
        available) and by the service (max_service_percent of its cost), and
        is truncated to whole cents so it never exceeds either bound. Routes
        without a pool get a zero subsidy.

        Args:
            route_id: Route the service runs on
            service_cost: Raw operating cost of the service
            max_surplus_percent: Largest share of the available pool one service may take
            max_service_percent: Largest share of the service cost that may be subsidised
            max_acceptable_fare: Highest fare used to derive the break-even passenger count

        Returns:
            SubsidyCalculation with the effective cost and break-even figures
        """
        raw_cost = to_decimal(service_cost)
        max_fare = to_decimal(max_acceptable_fare)

        pool = self.ledger.get_pool(route_id)
        available = to_decimal(pool.available_for_subsidy) if pool is not None else ZERO

        subsidy = ZERO
        if available > ZERO and raw_cost > ZERO:
            subsidy = floor_money(min(
                percent_of(available, max_surplus_percent),
                percent_of(raw_cost, max_service_percent),
            ))
            subsidy = max(ZERO, subsidy)

        effective_cost = raw_cost - subsidy
        passengers = minimum_passengers(effective_cost, max_fare)
        break_even_fare = round_money(effective_cost / passengers) if passengers > 0 else ZERO

        logger.debug(
            "Calculated available subsidy",
            route_id=route_id,
            raw_cost=str(raw_cost),
            available=str(available),
            subsidy=str(subsidy),
            minimum_passengers=passengers,
        )

        return SubsidyCalculation(
            raw_cost=round_money(raw_cost),
            available_subsidy=round_money(available),
            subsidy_applied=subsidy,
            effective_cost=round_money(effective_cost),
            minimum_passengers_needed=passengers,
            break_even_fare=break_even_fare,
            subsidy_source=(SubsidySource.ROUTE_SURPLUS if subsidy > ZERO else SubsidySource.NONE).value,
        )

    def apply_subsidy(
        self,
        route_id: int,
        tenant_id: int,
        context: ServiceContext,
        subsidy_amount: Decimal,
        passenger_count: int,
        service_cost: Decimal,
    ) -> SurplusTransaction:
        """
        Draw subsidy from a route pool for one service.

        Locks the pool, checks the balance, decrements it, appends a
        subsidy_applied transaction and updates (or creates) the service cost
        record. Either all of it commits or none of it does.

        Raises:
            PoolNotFoundException: The route has no pool
            InsufficientSurplusException: The pool cannot cover the draw
        """
        amount = round_money(subsidy_amount)
        cost = round_money(service_cost)

        def draw(pool: RouteSurplusPool) -> SurplusTransaction:
            available = to_decimal(pool.available_for_subsidy)
            if available < amount:
                raise InsufficientSurplusException(route_id, amount, available)

            record = self._get_or_create_cost_record(route_id, tenant_id, context, cost)
            if record is not None and context.cost_id is None:
                context.cost_id = record.id

            transaction = self.ledger.record_transaction(
                pool,
                SurplusTransactionType.SUBSIDY_APPLIED,
                amount,
                context,
                passenger_count=passenger_count,
                service_cost=cost,
            )
            pool.total_subsidized_services = (pool.total_subsidized_services or 0) + 1
            if context.service_date is not None:
                pool.last_subsidy_date = context.service_date

            if record is not None:
                record.subsidy_applied = to_decimal(record.subsidy_applied) + amount
                record.subsidy_source = SubsidySource.ROUTE_SURPLUS.value
                record.effective_cost = to_decimal(record.total_cost) - to_decimal(record.subsidy_applied)
                if record.total_revenue is not None:
                    record.net_surplus = to_decimal(record.total_revenue) - record.effective_cost

            return transaction

        transaction = self.ledger.with_locked_pool(route_id, tenant_id, draw)
        logger.info(
            "Subsidy applied",
            route_id=route_id,
            timetable_id=context.timetable_id,
            service_date=str(context.service_date),
            amount=str(amount),
            transaction_id=transaction.id,
        )
        return transaction

    def _get_or_create_cost_record(
        self,
        route_id: int,
        tenant_id: int,
        context: ServiceContext,
        service_cost: Decimal,
    ) -> Optional[ServiceCostRecord]:
        """Cost record of the subsidised service, created from the raw cost if missing"""
        if context.timetable_id is None or context.service_date is None:
            return None

        repo = self.ledger.repo
        record = repo.get_service_cost(context.timetable_id, context.service_date)
        if record is None:
            record = repo.create_service_cost(ServiceCostRecord(
                tenant_id=tenant_id,
                route_id=route_id,
                timetable_id=context.timetable_id,
                service_date=context.service_date,
                total_cost=service_cost,
                subsidy_applied=ZERO,
                effective_cost=service_cost,
            ))
        return record
