# coopbus/costing/router.py

"""
FastAPI router for service cost estimation and reconciliation.
"""

from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coopbus.costing.schemas import (
    CostEstimate, CostEstimateRequest, DemandPrediction,
    RevenueReconciliationRequest, ServiceCostRecordResponse,
)
from coopbus.costing.services import (
    ServiceCostEstimator, ServiceCostService, get_cost_estimator, predict_passenger_demand,
)
from coopbus.surplus.exceptions import ServiceNotFoundException
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/cooperative/costs",
    tags=["Service Costs"],
    responses={404: {"description": "Not found"}},
)


@router.post("/estimate", response_model=CostEstimate)
def estimate_cost(
    request: CostEstimateRequest,
    estimator: ServiceCostEstimator = Depends(get_cost_estimator),
):
    """
    Estimate the operating cost of one service.

    Falls back to default distance and duration when the distance
    provider cannot be reached.
    """
    return estimator.estimate_cost(
        request.route_id,
        request.origin,
        request.destination,
        request.service_date,
        departure_time=request.departure_time,
        vehicle_type=request.vehicle_type,
    )


@router.get("/demand", response_model=DemandPrediction)
def predict_demand(
    service_date: date = Query(...),
    departure_time: Optional[time] = Query(None, description="HH:MM"),
):
    return predict_passenger_demand(service_date, departure_time)


@router.get("/services/{timetable_id}/{service_date}", response_model=ServiceCostRecordResponse)
def get_service_cost(
    timetable_id: int,
    service_date: date,
    service: ServiceCostService = Depends(),
):
    record = service.get_record(timetable_id, service_date)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No service cost recorded for timetable {timetable_id} on {service_date}",
        )
    return record


@router.post(
    "/services/{timetable_id}/{service_date}",
    response_model=ServiceCostRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_service_cost(
    timetable_id: int,
    service_date: date,
    tenant_id: int = Query(..., gt=0),
    service: ServiceCostService = Depends(),
):
    """Estimate and store the cost of a service instance (idempotent)"""
    try:
        return service.record_estimate(tenant_id, timetable_id, service_date)
    except ServiceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post(
    "/services/{timetable_id}/{service_date}/reconcile",
    response_model=ServiceCostRecordResponse,
)
def reconcile_revenue(
    timetable_id: int,
    service_date: date,
    request: RevenueReconciliationRequest,
    service: ServiceCostService = Depends(),
):
    """Record the final takings and passenger count of a completed service"""
    logger.info(
        "Reconciling service revenue",
        timetable_id=timetable_id,
        service_date=str(service_date),
        total_revenue=str(request.total_revenue),
    )
    try:
        return service.reconcile_revenue(
            timetable_id, service_date, request.total_revenue, request.actual_passengers
        )
    except ServiceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
