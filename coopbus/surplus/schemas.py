# coopbus/surplus/schemas.py

"""
Pydantic schemas for the Surplus Ledger module.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict


# === Service context ===

class ServiceContext(BaseModel):
    """Service instance that caused a ledger mutation"""
    timetable_id: Optional[int] = Field(None, gt=0)
    service_date: Optional[date] = None
    cost_id: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None


# === Pool Schemas ===

class SurplusPoolResponse(BaseModel):
    """Current state of a route surplus pool"""
    id: int
    route_id: int
    tenant_id: int
    accumulated_surplus: Decimal
    available_for_subsidy: Decimal
    reserved_for_reserves: Decimal
    reserved_for_business: Decimal
    total_distributed_dividends: Decimal
    lifetime_total_revenue: Decimal
    lifetime_total_costs: Decimal
    lifetime_gross_surplus: Decimal
    total_services_run: int
    total_profitable_services: int
    total_subsidized_services: int
    last_surplus_date: Optional[date] = None
    last_subsidy_date: Optional[date] = None
    last_updated: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InitializePoolRequest(BaseModel):
    """Request to create a route pool"""
    tenant_id: int = Field(..., gt=0)


class SurplusTransactionResponse(BaseModel):
    """Single ledger entry"""
    id: int
    pool_id: int
    route_id: int
    transaction_type: str
    amount: Decimal
    pool_balance_before: Decimal
    pool_balance_after: Decimal
    available_before: Decimal
    available_after: Decimal
    to_reserves: Decimal
    to_business: Decimal
    to_dividends: Decimal
    to_pool: Decimal
    timetable_id: Optional[int] = None
    service_date: Optional[date] = None
    cost_id: Optional[int] = None
    passenger_count: Optional[int] = None
    service_cost: Optional[Decimal] = None
    description: Optional[str] = None
    created_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PoolStatistics(BaseModel):
    """Pool balances with derived performance figures"""
    route_id: int
    accumulated_surplus: Decimal
    available_for_subsidy: Decimal
    reserved_for_reserves: Decimal
    reserved_for_business: Decimal
    total_distributed_dividends: Decimal
    lifetime_total_revenue: Decimal
    lifetime_total_costs: Decimal
    lifetime_gross_surplus: Decimal
    total_services_run: int
    total_profitable_services: int
    total_subsidized_services: int
    profitability_rate: Decimal = Field(..., description="Profitable services as a percentage of all services")
    transaction_count: int


class PoolBalances(BaseModel):
    """Balance fields of a pool, used by ledger replay"""
    accumulated_surplus: Decimal = Decimal("0.00")
    available_for_subsidy: Decimal = Decimal("0.00")
    reserved_for_reserves: Decimal = Decimal("0.00")
    reserved_for_business: Decimal = Decimal("0.00")
    total_distributed_dividends: Decimal = Decimal("0.00")


class PoolVerificationResult(BaseModel):
    """Outcome of replaying a pool's transactions"""
    route_id: int
    transaction_count: int
    replayed: PoolBalances
    stored: PoolBalances
    is_consistent: bool
    discrepancies: List[str] = Field(default_factory=list)
