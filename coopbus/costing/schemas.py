# coopbus/costing/schemas.py

"""
Pydantic schemas for the Service Costing module.
"""

from datetime import date, time
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


class RouteInfo(BaseModel):
    """Distance and duration used by an estimate"""
    route_id: Optional[int] = None
    origin: str
    destination: str
    distance_miles: Decimal
    duration_minutes: int
    ai_buffer_applied: bool = Field(..., description="False when fallback duration was used")
    provider_available: bool


class CostBreakdown(BaseModel):
    """Operating cost of one service by component"""
    driver_wages: Decimal
    fuel_cost: Decimal
    vehicle_depreciation: Decimal
    vehicle_maintenance_allocation: Decimal
    insurance_allocation: Decimal
    admin_overhead: Decimal
    other_costs: Decimal = Decimal("0.00")
    total_cost: Decimal


class DemandPrediction(BaseModel):
    """Heuristic passenger demand forecast"""
    predicted_demand: int
    confidence_level: float
    reasoning: List[str] = Field(default_factory=list)


class CostInsights(BaseModel):
    """Forecast figures attached to an estimate"""
    predicted_demand: int
    confidence_level: float
    seasonal_adjustment_factor: Decimal
    traffic_delay_probability: Decimal
    recommended_minimum_passengers: int


class CostEstimate(BaseModel):
    """Full operating cost estimate of a service"""
    service_date: date
    vehicle_type: str
    route_info: RouteInfo
    cost_breakdown: CostBreakdown
    minimum_passengers_needed: int
    ai_insights: Optional[CostInsights] = None


class CostEstimateRequest(BaseModel):
    """Request for an ad-hoc cost estimate"""
    route_id: Optional[int] = Field(None, gt=0)
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    service_date: date
    departure_time: Optional[time] = None
    vehicle_type: str = Field("minibus", pattern="^(minibus|bus)$")


class RevenueReconciliationRequest(BaseModel):
    """Final takings of a completed service"""
    total_revenue: Decimal = Field(..., ge=0)
    actual_passengers: int = Field(..., ge=0)


class ServiceCostRecordResponse(BaseModel):
    """Stored cost record of a service instance"""
    id: int
    tenant_id: int
    route_id: int
    timetable_id: int
    service_date: date
    driver_wages: Decimal
    fuel_cost: Decimal
    vehicle_depreciation: Decimal
    vehicle_maintenance_allocation: Decimal
    insurance_allocation: Decimal
    admin_overhead: Decimal
    other_costs: Decimal
    total_cost: Decimal
    subsidy_applied: Decimal
    subsidy_source: str
    effective_cost: Decimal
    actual_passengers: Optional[int] = None
    total_revenue: Optional[Decimal] = None
    gross_surplus: Optional[Decimal] = None
    net_surplus: Optional[Decimal] = None
    revenue_reconciled: bool

    model_config = ConfigDict(from_attributes=True)
