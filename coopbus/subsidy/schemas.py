# coopbus/subsidy/schemas.py

"""
Pydantic schemas for the Subsidy Calculator.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class SubsidyCalculation(BaseModel):
    """Bounded subsidy quote for one service"""
    raw_cost: Decimal
    available_subsidy: Decimal = Field(..., description="Pool balance open to subsidy at quote time")
    subsidy_applied: Decimal
    effective_cost: Decimal
    minimum_passengers_needed: int
    break_even_fare: Decimal
    subsidy_source: str


class SubsidyQuoteRequest(BaseModel):
    """Request for a subsidy quote"""
    service_cost: Decimal = Field(..., ge=0)
    max_surplus_percent: Decimal = Field(Decimal("50"), ge=0, le=100)
    max_service_percent: Decimal = Field(Decimal("30"), ge=0, le=100)
    max_acceptable_fare: Decimal = Field(Decimal("20"), gt=0)


class ApplySubsidyRequest(BaseModel):
    """Request to draw subsidy for a service"""
    tenant_id: int = Field(..., gt=0)
    timetable_id: int = Field(..., gt=0)
    service_date: date
    cost_id: Optional[int] = Field(None, gt=0)
    subsidy_amount: Decimal = Field(..., gt=0)
    passenger_count: int = Field(..., ge=0)
    service_cost: Decimal = Field(..., gt=0)
