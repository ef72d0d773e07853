# coopbus/surplus/services.py

"""
Business logic for the per-route surplus ledger.

The ledger keeps one balance sheet per route and an append-only transaction
log. Balances only change through record_transaction, and record_transaction
is only called inside SurplusRepository.with_locked_pool, so the balance
update and its ledger entry commit or roll back together.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, TypeVar

from fastapi import Depends
from sqlalchemy.orm import Session

from coopbus.core.db import get_db
from coopbus.surplus.exceptions import InvalidSurplusAmountException, PoolNotFoundException
from coopbus.surplus.models import RouteSurplusPool, SurplusTransaction, SurplusTransactionType
from coopbus.surplus.repository import SurplusRepository
from coopbus.surplus.schemas import (
    PoolBalances, PoolStatistics, PoolVerificationResult, ServiceContext,
)
from coopbus.utils.logger import get_logger
from coopbus.utils.money import ZERO, HUNDRED, round_money, to_decimal

logger = get_logger(__name__)

T = TypeVar("T")

BALANCE_FIELDS = (
    "accumulated_surplus",
    "available_for_subsidy",
    "reserved_for_reserves",
    "reserved_for_business",
    "total_distributed_dividends",
)


def get_surplus_repository(db: Session = Depends(get_db)) -> SurplusRepository:
    """Dependency to get SurplusRepository instance."""
    return SurplusRepository(db)


class SurplusLedgerService:
    """Reads and mutates route surplus pools"""

    def __init__(self, repo: SurplusRepository = Depends(get_surplus_repository)):
        self.repo = repo

    # === Pool lifecycle ===

    def get_pool(self, route_id: int) -> Optional[RouteSurplusPool]:
        """Pool of a route, or None when the route never had one"""
        return self.repo.get_pool(route_id)

    def initialize_pool(self, route_id: int, tenant_id: int) -> RouteSurplusPool:
        """
        Create the pool of a route if it does not exist.

        Re-initialising an existing pool leaves every balance untouched and
        only refreshes last_updated.

        Raises:
            RouteNotFoundException: tenant_id does not own the route
        """
        try:
            self.repo.require_route(route_id, tenant_id)
            pool = self.repo.get_pool_for_update(route_id)
            if pool is None:
                pool = self.repo.create_pool(route_id, tenant_id)
                logger.info("Surplus pool initialised", route_id=route_id, tenant_id=tenant_id)
            else:
                pool.last_updated = datetime.now(timezone.utc)
                logger.info("Surplus pool already initialised", route_id=route_id, pool_id=pool.id)
            self.repo.commit()
            return pool
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to initialise surplus pool", route_id=route_id, error=str(e))
            raise

    def with_locked_pool(
        self,
        route_id: int,
        tenant_id: int,
        fn: Callable[[RouteSurplusPool], T],
        create_if_missing: bool = False,
    ) -> T:
        """Run fn against the locked pool; see SurplusRepository.with_locked_pool"""
        return self.repo.with_locked_pool(route_id, tenant_id, fn, create_if_missing=create_if_missing)

    # === Ledger mutation ===

    def record_transaction(
        self,
        pool: RouteSurplusPool,
        transaction_type: SurplusTransactionType,
        amount: Decimal,
        context: ServiceContext,
        to_reserves: Decimal = ZERO,
        to_business: Decimal = ZERO,
        to_dividends: Decimal = ZERO,
        to_pool: Decimal = ZERO,
        passenger_count: Optional[int] = None,
        service_cost: Optional[Decimal] = None,
    ) -> SurplusTransaction:
        """
        Apply a balance change to a locked pool and append its ledger entry.

        Must only be called from inside with_locked_pool. A surplus_added entry
        spreads the amount across the four buckets using the given split; a
        subsidy_applied entry draws the amount from available_for_subsidy.
        """
        amount = round_money(amount)
        if amount <= ZERO:
            raise InvalidSurplusAmountException(amount)

        balance_before = to_decimal(pool.accumulated_surplus)
        available_before = to_decimal(pool.available_for_subsidy)

        if transaction_type == SurplusTransactionType.SURPLUS_ADDED:
            pool.accumulated_surplus = balance_before + amount
            pool.available_for_subsidy = available_before + to_pool
            pool.reserved_for_reserves = to_decimal(pool.reserved_for_reserves) + to_reserves
            pool.reserved_for_business = to_decimal(pool.reserved_for_business) + to_business
            pool.total_distributed_dividends = to_decimal(pool.total_distributed_dividends) + to_dividends
        else:
            pool.accumulated_surplus = balance_before - amount
            pool.available_for_subsidy = available_before - amount

        transaction = SurplusTransaction(
            pool_id=pool.id,
            route_id=pool.route_id,
            tenant_id=pool.tenant_id,
            transaction_type=transaction_type.value,
            amount=amount,
            pool_balance_before=balance_before,
            pool_balance_after=pool.accumulated_surplus,
            available_before=available_before,
            available_after=pool.available_for_subsidy,
            to_reserves=to_reserves,
            to_business=to_business,
            to_dividends=to_dividends,
            to_pool=to_pool,
            timetable_id=context.timetable_id,
            service_date=context.service_date,
            cost_id=context.cost_id,
            passenger_count=passenger_count,
            service_cost=round_money(service_cost) if service_cost is not None else None,
            description=context.description,
        )
        return self.repo.create_transaction(transaction)

    # === Reporting ===

    def get_transactions(self, route_id: int, limit: int = 50, offset: int = 0) -> List[SurplusTransaction]:
        """Transaction history of a route, newest first"""
        return self.repo.get_transactions(route_id, limit=limit, offset=offset)

    def get_statistics(self, route_id: int) -> Optional[PoolStatistics]:
        """Pool balances with the profitability rate, or None without a pool"""
        pool = self.repo.get_pool(route_id)
        if pool is None:
            return None

        profitability_rate = ZERO
        if pool.total_services_run > 0:
            profitability_rate = round_money(
                Decimal(pool.total_profitable_services) / Decimal(pool.total_services_run) * HUNDRED
            )

        return PoolStatistics(
            route_id=route_id,
            accumulated_surplus=pool.accumulated_surplus,
            available_for_subsidy=pool.available_for_subsidy,
            reserved_for_reserves=pool.reserved_for_reserves,
            reserved_for_business=pool.reserved_for_business,
            total_distributed_dividends=pool.total_distributed_dividends,
            lifetime_total_revenue=pool.lifetime_total_revenue,
            lifetime_total_costs=pool.lifetime_total_costs,
            lifetime_gross_surplus=pool.lifetime_gross_surplus,
            total_services_run=pool.total_services_run,
            total_profitable_services=pool.total_profitable_services,
            total_subsidized_services=pool.total_subsidized_services,
            profitability_rate=profitability_rate,
            transaction_count=self.repo.count_transactions(route_id),
        )

    def replay_pool(self, route_id: int) -> PoolBalances:
        """Rebuild a pool's balances from zero using its transactions in order"""
        pool = self.repo.get_pool(route_id)
        if pool is None:
            raise PoolNotFoundException(route_id)

        balances = PoolBalances()
        for tx in self.repo.get_transactions_in_order(pool.id):
            amount = to_decimal(tx.amount)
            if tx.transaction_type == SurplusTransactionType.SURPLUS_ADDED.value:
                balances.accumulated_surplus += amount
                balances.available_for_subsidy += to_decimal(tx.to_pool)
                balances.reserved_for_reserves += to_decimal(tx.to_reserves)
                balances.reserved_for_business += to_decimal(tx.to_business)
                balances.total_distributed_dividends += to_decimal(tx.to_dividends)
            else:
                balances.accumulated_surplus -= amount
                balances.available_for_subsidy -= amount
        return balances

    def verify_pool(self, route_id: int) -> PoolVerificationResult:
        """Compare a replay of the ledger against the stored pool balances"""
        replayed = self.replay_pool(route_id)
        pool = self.repo.get_pool(route_id)
        stored = PoolBalances(**{name: to_decimal(getattr(pool, name)) for name in BALANCE_FIELDS})

        discrepancies = []
        for name in BALANCE_FIELDS:
            if round_money(getattr(replayed, name)) != round_money(getattr(stored, name)):
                discrepancies.append(
                    f"{name}: replayed {getattr(replayed, name)} != stored {getattr(stored, name)}"
                )

        running = ZERO
        transactions = self.repo.get_transactions_in_order(pool.id)
        for tx in transactions:
            if round_money(tx.pool_balance_before) != round_money(running):
                discrepancies.append(
                    f"transaction {tx.id}: balance_before {tx.pool_balance_before} != running {running}"
                )
            running = to_decimal(tx.pool_balance_after)

        if discrepancies:
            logger.warning("Surplus ledger mismatch", route_id=route_id, discrepancies=discrepancies)

        return PoolVerificationResult(
            route_id=route_id,
            transaction_count=len(transactions),
            replayed=replayed,
            stored=stored,
            is_consistent=not discrepancies,
            discrepancies=discrepancies,
        )

    # === Lifetime counters ===

    @staticmethod
    def record_service_outcome(
        pool: RouteSurplusPool,
        revenue: Decimal,
        cost: Decimal,
        service_date: Optional[date] = None,
    ) -> None:
        """Add a reconciled service to the lifetime counters of a locked pool"""
        pool.lifetime_total_revenue = to_decimal(pool.lifetime_total_revenue) + revenue
        pool.lifetime_total_costs = to_decimal(pool.lifetime_total_costs) + cost
        pool.lifetime_gross_surplus = to_decimal(pool.lifetime_gross_surplus) + (revenue - cost)
        pool.total_services_run = (pool.total_services_run or 0) + 1
        if service_date is not None and revenue > cost:
            pool.last_surplus_date = service_date
