# coopbus/pricing/router.py

"""
FastAPI router for dynamic fares.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coopbus.pricing.schemas import BookingPrice, PriceQuote
from coopbus.pricing.services import DynamicPricingEngine
from coopbus.surplus.exceptions import ServiceNotFoundException
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/cooperative/pricing",
    tags=["Dynamic Pricing"],
    responses={404: {"description": "Not found"}},
)


@router.get("/services/{timetable_id}/{service_date}", response_model=PriceQuote)
def get_current_price(
    timetable_id: int,
    service_date: date,
    tenant_id: int = Query(..., gt=0),
    engine: DynamicPricingEngine = Depends(),
):
    """
    Current fare of a service instance.

    The fare is the effective cost shared by the bookings made so far,
    never below the route's minimum fare floor.
    """
    try:
        return engine.calculate_current_price(tenant_id, timetable_id, service_date)
    except ServiceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/services/{timetable_id}/{service_date}/booking-price", response_model=BookingPrice)
def get_booking_price(
    timetable_id: int,
    service_date: date,
    tenant_id: int = Query(..., gt=0),
    customer_id: Optional[int] = Query(None, gt=0),
    engine: DynamicPricingEngine = Depends(),
):
    """Fare a customer would pay for a new booking"""
    try:
        return engine.get_price_for_booking(tenant_id, timetable_id, service_date, customer_id=customer_id)
    except ServiceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
