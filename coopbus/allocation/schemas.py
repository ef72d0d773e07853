# coopbus/allocation/schemas.py

"""
Pydantic schemas for the Surplus Allocator.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class AllocationSplit(BaseModel):
    """Gross surplus divided into its four destinations"""
    gross_surplus: Decimal
    to_reserves: Decimal
    to_business: Decimal
    to_dividends: Decimal
    to_pool: Decimal


class SurplusAllocationResult(AllocationSplit):
    """Outcome of allocating a profitable service's surplus"""
    transaction_id: int
    allocation_breakdown: List[str] = Field(default_factory=list)


class AllocateSurplusRequest(BaseModel):
    """Request to allocate a service's surplus"""
    tenant_id: int = Field(..., gt=0)
    timetable_id: int = Field(..., gt=0)
    service_date: date
    cost_id: Optional[int] = Field(None, gt=0)
    gross_surplus: Decimal = Field(..., gt=0)
    reserves_percent: Decimal = Field(Decimal("20"), ge=0, le=100)
    business_percent: Decimal = Field(Decimal("30"), ge=0, le=100)
    dividend_percent: Decimal = Field(Decimal("50"), ge=0, le=100)
