# coopbus/pricing/schemas.py

"""
Pydantic schemas for the Dynamic Pricing Engine.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class ServiceInfo(BaseModel):
    timetable_id: int
    service_date: date
    route_id: int
    route_number: str
    pricing_model: str


class PriceCostBreakdown(BaseModel):
    total_cost: Decimal
    subsidy_applied: Decimal
    effective_cost: Decimal


class BookingInfo(BaseModel):
    current_bookings: int
    total_capacity: int
    minimum_passengers_needed: int
    minimum_with_subsidy: int
    spaces_remaining: int


class PricingDetails(BaseModel):
    base_price_per_passenger: Decimal
    member_price: Decimal
    non_member_price: Decimal
    non_member_surcharge_percent: Decimal
    minimum_fare_floor: Decimal
    floor_reached: bool
    is_viable: bool


class SurplusInfo(BaseModel):
    pool_balance: Decimal
    subsidy_available: Decimal
    passengers_saved: int


class PriceQuote(BaseModel):
    """Current fare of a service instance"""
    service_info: ServiceInfo
    cost_breakdown: PriceCostBreakdown
    booking_info: BookingInfo
    pricing: PricingDetails
    surplus_info: Optional[SurplusInfo] = None
    message: str


class BookingPrice(BaseModel):
    """Fare a specific customer would pay"""
    price: Decimal
    is_member: bool
    pricing_details: PriceQuote
