# coopbus/allocation/services.py

"""
Surplus Allocator.

Splits a profitable service's gross surplus into reserves, business costs,
dividends and the route's subsidy capacity, and books it on the route pool.
"""

from decimal import Decimal

from fastapi import Depends

from coopbus.allocation.exceptions import InvalidAllocationPercentagesException
from coopbus.allocation.schemas import AllocationSplit, SurplusAllocationResult
from coopbus.surplus.exceptions import InvalidSurplusAmountException
from coopbus.surplus.models import RouteSurplusPool, SurplusTransactionType
from coopbus.surplus.schemas import ServiceContext
from coopbus.surplus.services import SurplusLedgerService
from coopbus.utils.logger import get_logger
from coopbus.utils.money import HUNDRED, ZERO, floor_money, percent_of, round_money, to_decimal

logger = get_logger(__name__)


def validate_percentages(reserves_percent, business_percent, dividend_percent) -> None:
    """Reject a split with a negative share or a total other than 100"""
    shares = [to_decimal(p) for p in (reserves_percent, business_percent, dividend_percent)]
    if any(p < ZERO for p in shares) or sum(shares) != HUNDRED:
        raise InvalidAllocationPercentagesException(*shares)


def split_surplus(
    gross_surplus: Decimal,
    reserves_percent: Decimal = Decimal("20"),
    business_percent: Decimal = Decimal("30"),
    dividend_percent: Decimal = Decimal("50"),
) -> AllocationSplit:
    """
    Divide a gross surplus by percentage.

    The three percentage shares are truncated to cents; the pool takes the
    exact remainder, so the four parts always add back to the gross amount
    and the pool share is never negative.
    """
    validate_percentages(reserves_percent, business_percent, dividend_percent)
    gross = round_money(gross_surplus)

    to_reserves = floor_money(percent_of(gross, reserves_percent))
    to_business = floor_money(percent_of(gross, business_percent))
    to_dividends = floor_money(percent_of(gross, dividend_percent))
    to_pool = gross - to_reserves - to_business - to_dividends

    return AllocationSplit(
        gross_surplus=gross,
        to_reserves=to_reserves,
        to_business=to_business,
        to_dividends=to_dividends,
        to_pool=to_pool,
    )


class SurplusAllocator:
    """Books profitable services' surplus on their route pools"""

    def __init__(self, ledger: SurplusLedgerService = Depends(SurplusLedgerService)):
        self.ledger = ledger

    def allocate_surplus(
        self,
        route_id: int,
        tenant_id: int,
        context: ServiceContext,
        gross_surplus: Decimal,
        reserves_percent: Decimal = Decimal("20"),
        business_percent: Decimal = Decimal("30"),
        dividend_percent: Decimal = Decimal("50"),
    ) -> SurplusAllocationResult:
        """
        Allocate the surplus of one profitable service.

        Creates the route pool on first use, then in one locked unit of work
        adds the split to the pool buckets, counts the service as profitable
        and appends a surplus_added transaction.

        Raises:
            InvalidAllocationPercentagesException: Percentages do not sum to 100
            InvalidSurplusAmountException: gross_surplus is not positive
            RouteNotFoundException: tenant_id does not own the route
        """
        if to_decimal(gross_surplus) <= ZERO:
            raise InvalidSurplusAmountException(to_decimal(gross_surplus))

        split = split_surplus(gross_surplus, reserves_percent, business_percent, dividend_percent)
        breakdown = [
            f"{reserves_percent}% to reserves: {split.to_reserves}",
            f"{business_percent}% to business: {split.to_business}",
            f"{dividend_percent}% to dividends: {split.to_dividends}",
            f"Remainder to pool: {split.to_pool}",
        ]
        if context.description is None:
            context.description = "Surplus allocated: " + "; ".join(breakdown)

        def book(pool: RouteSurplusPool):
            transaction = self.ledger.record_transaction(
                pool,
                SurplusTransactionType.SURPLUS_ADDED,
                split.gross_surplus,
                context,
                to_reserves=split.to_reserves,
                to_business=split.to_business,
                to_dividends=split.to_dividends,
                to_pool=split.to_pool,
            )
            pool.total_profitable_services = (pool.total_profitable_services or 0) + 1
            if context.service_date is not None:
                pool.last_surplus_date = context.service_date
            return transaction

        transaction = self.ledger.with_locked_pool(route_id, tenant_id, book, create_if_missing=True)

        logger.info(
            "Surplus allocated",
            route_id=route_id,
            timetable_id=context.timetable_id,
            gross_surplus=str(split.gross_surplus),
            allocation_breakdown=breakdown,
        )

        return SurplusAllocationResult(
            **split.model_dump(),
            transaction_id=transaction.id,
            allocation_breakdown=breakdown,
        )
