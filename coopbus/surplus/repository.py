# coopbus/surplus/repository.py

"""
Repository layer for the surplus ledger.
Handles all database operations for route_surplus_pools, surplus_transactions
and service_costs.
"""

from datetime import date, datetime, timezone
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import select, func, desc
from sqlalchemy.orm import Session

from coopbus.operations.models import BusRoute
from coopbus.surplus.exceptions import PoolNotFoundException, RouteNotFoundException
from coopbus.surplus.models import RouteSurplusPool, SurplusTransaction, ServiceCostRecord
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SurplusRepository:
    """
    Repository for surplus ledger database operations.
    Every balance mutation goes through with_locked_pool.
    """

    def __init__(self, db: Session):
        self.db = db

    # === Pool Operations ===

    def get_pool(self, route_id: int) -> Optional[RouteSurplusPool]:
        """Get the pool of a route without locking"""
        stmt = select(RouteSurplusPool).where(RouteSurplusPool.route_id == route_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_pool_for_update(self, route_id: int) -> Optional[RouteSurplusPool]:
        """Get the pool row holding an exclusive lock until commit or rollback"""
        stmt = (
            select(RouteSurplusPool)
            .where(RouteSurplusPool.route_id == route_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def require_route(self, route_id: int, tenant_id: int) -> BusRoute:
        """
        Get a route owned by tenant_id.

        Raises:
            RouteNotFoundException: Unknown route or route of another tenant
        """
        route = self.db.get(BusRoute, route_id)
        if route is None or route.tenant_id != tenant_id:
            raise RouteNotFoundException(route_id, tenant_id)
        return route

    def create_pool(self, route_id: int, tenant_id: int) -> RouteSurplusPool:
        """Create an empty pool"""
        pool = RouteSurplusPool(
            route_id=route_id,
            tenant_id=tenant_id,
            last_updated=datetime.now(timezone.utc),
        )
        self.db.add(pool)
        self.db.flush()
        logger.info("Created surplus pool", route_id=route_id, tenant_id=tenant_id, pool_id=pool.id)
        return pool

    def with_locked_pool(
        self,
        route_id: int,
        tenant_id: int,
        fn: Callable[[RouteSurplusPool], T],
        create_if_missing: bool = False,
    ) -> T:
        """
        Run fn against the locked pool row as one unit of work.

        The row lock is taken before fn runs and released by the commit.
        Any exception raised by fn rolls back the balance changes and the
        transaction rows together, then propagates.

        Args:
            route_id: Route whose pool is mutated
            tenant_id: Owning tenant
            fn: Callback receiving the locked pool
            create_if_missing: Create the pool instead of raising PoolNotFoundException

        Raises:
            RouteNotFoundException: tenant_id does not own the route

        Returns:
            Whatever fn returns
        """
        try:
            self.require_route(route_id, tenant_id)
            pool = self.get_pool_for_update(route_id)
            if pool is None:
                if not create_if_missing:
                    raise PoolNotFoundException(route_id)
                pool = self.create_pool(route_id, tenant_id)

            result = fn(pool)
            pool.last_updated = datetime.now(timezone.utc)
            self.db.flush()
            self.commit()
            return result
        except Exception as e:
            self.rollback()
            logger.error(
                "Surplus pool unit of work rolled back",
                route_id=route_id, tenant_id=tenant_id, error=str(e)
            )
            raise

    # === Transaction Operations ===

    def create_transaction(self, transaction: SurplusTransaction) -> SurplusTransaction:
        """Append a ledger entry"""
        self.db.add(transaction)
        self.db.flush()
        logger.debug(
            "Recorded surplus transaction",
            transaction_id=transaction.id,
            transaction_type=transaction.transaction_type,
            amount=str(transaction.amount),
        )
        return transaction

    def get_transactions(
        self, route_id: int, limit: int = 50, offset: int = 0
    ) -> List[SurplusTransaction]:
        """Most recent transactions of a route first"""
        stmt = (
            select(SurplusTransaction)
            .where(SurplusTransaction.route_id == route_id)
            .order_by(desc(SurplusTransaction.id))
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_transactions_in_order(self, pool_id: int) -> List[SurplusTransaction]:
        """All transactions of a pool in creation order"""
        stmt = (
            select(SurplusTransaction)
            .where(SurplusTransaction.pool_id == pool_id)
            .order_by(SurplusTransaction.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_transactions(self, route_id: int) -> int:
        """Number of transactions recorded for a route"""
        stmt = select(func.count(SurplusTransaction.id)).where(SurplusTransaction.route_id == route_id)
        return self.db.execute(stmt).scalar() or 0

    # === Service Cost Operations ===

    def get_service_cost(
        self, timetable_id: int, service_date: date, for_update: bool = False
    ) -> Optional[ServiceCostRecord]:
        """Get the cost record of a service instance, optionally locking the row"""
        stmt = select(ServiceCostRecord).where(
            ServiceCostRecord.timetable_id == timetable_id,
            ServiceCostRecord.service_date == service_date,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_service_cost(self, record: ServiceCostRecord) -> ServiceCostRecord:
        """Persist a new cost record"""
        self.db.add(record)
        self.db.flush()
        logger.info(
            "Created service cost record",
            timetable_id=record.timetable_id,
            service_date=str(record.service_date),
            total_cost=str(record.total_cost),
        )
        return record

    # === Session Operations ===

    def commit(self) -> None:
        """Commit the current transaction"""
        self.db.commit()

    def rollback(self) -> None:
        """Roll back the current transaction"""
        self.db.rollback()
