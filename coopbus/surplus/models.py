# coopbus/surplus/models.py

"""
Surplus ledger models - SQLAlchemy 2.x

Implements the per-route surplus ledger:
- Route_Surplus_Pools: Balance sheet of one route (one row per route).
- Surplus_Transactions: Append-only record of every pool mutation.
- Service_Costs: Cost snapshot of one service instance (timetable + date).
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from enum import Enum as PyEnum

from sqlalchemy import (
    String, Numeric, Integer, Boolean, DateTime, Date, Index, ForeignKey,
    UniqueConstraint, Enum as SQLEnum, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from coopbus.core.db import Base
from coopbus.core.mixins import AuditMixin


# === Enums ===

class SurplusTransactionType(str, PyEnum):
    """Direction of a pool mutation"""
    SURPLUS_ADDED = "surplus_added"
    SUBSIDY_APPLIED = "subsidy_applied"


class SubsidySource(str, PyEnum):
    """Where a service's subsidy came from"""
    NONE = "none"
    ROUTE_SURPLUS = "route_surplus_pool"


# === Route_Surplus_Pools Model ===

class RouteSurplusPool(Base, AuditMixin):
    """
    Balance sheet of a single route.

    Core Principles:
    - Created lazily on the first profitable or subsidised service
    - Mutated only inside a locked unit of work that also appends a transaction
    - accumulated_surplus == available_for_subsidy + reserved_for_reserves
      + reserved_for_business + total_distributed_dividends
    - Never deleted
    """
    __tablename__ = "route_surplus_pools"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("bus_routes.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)

    # === Balances ===
    accumulated_surplus: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False,
        comment="Everything ever added minus everything drawn as subsidy"
    )
    available_for_subsidy: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False,
        comment="Part of the pool that under-loaded services may draw"
    )
    reserved_for_reserves: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    reserved_for_business: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    total_distributed_dividends: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )

    # === Lifetime statistics ===
    lifetime_total_revenue: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    lifetime_total_costs: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    lifetime_gross_surplus: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    total_services_run: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_profitable_services: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_subsidized_services: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    last_surplus_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_subsidy_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_updated: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("route_id", name="uq_surplus_pool_route"),
    )

    def __repr__(self) -> str:
        return (
            f"<RouteSurplusPool(route_id={self.route_id}, "
            f"accumulated={self.accumulated_surplus}, available={self.available_for_subsidy})>"
        )


# === Surplus_Transactions Model ===

class SurplusTransaction(Base, AuditMixin):
    """
    Write-once record of one pool mutation.

    pool_balance_before / pool_balance_after bracket accumulated_surplus, so
    after == before + amount for surplus_added and before - amount for
    subsidy_applied. The allocation split is stored alongside so a replay can
    rebuild every balance of the pool.
    """
    __tablename__ = "surplus_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    pool_id: Mapped[int] = mapped_column(ForeignKey("route_surplus_pools.id"), nullable=False, index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("bus_routes.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)

    transaction_type: Mapped[str] = mapped_column(
        SQLEnum("surplus_added", "subsidy_applied", name="surplus_transaction_type_enum"),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, comment="Always positive; the type gives the sign"
    )
    pool_balance_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    pool_balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    available_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    available_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # === Allocation split (surplus_added only) ===
    to_reserves: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    to_business: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    to_dividends: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    to_pool: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    # === Service context ===
    timetable_id: Mapped[Optional[int]] = mapped_column(ForeignKey("timetables.id"), nullable=True)
    service_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    cost_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_costs.id"), nullable=True)
    passenger_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    service_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_surplus_tx_route_created", "route_id", "created_on"),
        Index("idx_surplus_tx_service", "timetable_id", "service_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<SurplusTransaction(id={self.id}, type='{self.transaction_type}', "
            f"amount={self.amount})>"
        )


# === Service_Costs Model ===

class ServiceCostRecord(Base, AuditMixin):
    """Cost and revenue snapshot of one service instance"""
    __tablename__ = "service_costs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("bus_routes.id"), nullable=False, index=True)
    timetable_id: Mapped[int] = mapped_column(ForeignKey("timetables.id"), nullable=False)
    service_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # === Cost breakdown ===
    driver_wages: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    fuel_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    vehicle_depreciation: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    vehicle_maintenance_allocation: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    insurance_allocation: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    admin_overhead: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    other_costs: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # === Subsidy ===
    subsidy_applied: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    subsidy_source: Mapped[str] = mapped_column(String(32), default="none", nullable=False)
    effective_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, comment="total_cost - subsidy_applied"
    )

    # === Revenue reconciliation ===
    actual_passengers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    gross_surplus: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True, comment="total_revenue - total_cost"
    )
    net_surplus: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True, comment="total_revenue - effective_cost"
    )
    revenue_reconciled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # === Estimate metadata ===
    distance_miles: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_buffer_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("timetable_id", "service_date", name="uq_service_cost_instance"),
        Index("idx_service_cost_tenant_date", "tenant_id", "service_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceCostRecord(timetable_id={self.timetable_id}, date={self.service_date}, "
            f"total={self.total_cost}, subsidy={self.subsidy_applied})>"
        )
