# coopbus/dividends/router.py

"""
FastAPI router for dividend distributions and their scheduler.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coopbus.allocation.exceptions import InvalidAllocationPercentagesException
from coopbus.dividends.exceptions import (
    DistributionNotFoundException, DistributionStatusException,
    DuplicateDistributionPeriodException, InvalidDividendPeriodException,
)
from coopbus.dividends.scheduler import DividendScheduler
from coopbus.dividends.schemas import (
    CalculateDividendsRequest, CancelDistributionRequest, DistributionDetailResponse,
    DistributionResponse, DividendCalculationResult, MarkPaidRequest, MemberDividendResponse,
    ScheduleSettingsResponse, ScheduleSettingsUpdate, SchedulerRunResult,
)
from coopbus.dividends.services import DividendService
from coopbus.dividends.tasks import scheduler
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/cooperative/dividends",
    tags=["Dividends"],
    responses={404: {"description": "Not found"}},
)


def get_dividend_scheduler() -> DividendScheduler:
    """Dependency to get the process-wide dividend scheduler."""
    return scheduler


# === Calculation ===

@router.post("/calculate", response_model=DividendCalculationResult)
def calculate_dividends(
    request: CalculateDividendsRequest,
    tenant_id: int = Query(..., gt=0),
    service: DividendService = Depends(),
):
    """
    Calculate the dividends of a period.

    With save=true the plan is also stored as a calculated distribution and
    the response carries its id.
    """
    logger.info(
        "Calculating dividends",
        tenant_id=tenant_id,
        period_start=str(request.period_start),
        period_end=str(request.period_end),
        save=request.save,
    )
    try:
        result = service.calculate_dividends(
            tenant_id,
            request.period_start,
            request.period_end,
            reserves_percent=request.reserves_percent,
            business_percent=request.business_percent,
            dividend_percent=request.dividend_percent,
        )
        if request.save:
            result.distribution_id = service.save_dividend_distribution(result)
        return result
    except DuplicateDistributionPeriodException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except (InvalidAllocationPercentagesException, InvalidDividendPeriodException) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


# === Distributions ===

@router.get("/distributions", response_model=List[DistributionResponse])
def get_distribution_history(
    tenant_id: int = Query(..., gt=0),
    limit: int = Query(12, ge=1, le=120),
    service: DividendService = Depends(),
):
    """Distributions of a tenant, latest period first"""
    return service.get_distribution_history(tenant_id, limit=limit)


@router.get("/distributions/{distribution_id}", response_model=DistributionDetailResponse)
def get_distribution(distribution_id: int, service: DividendService = Depends()):
    try:
        return service.get_distribution(distribution_id)
    except DistributionNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/distributions/{distribution_id}/pay", response_model=DistributionDetailResponse)
def mark_distribution_paid(
    distribution_id: int,
    request: MarkPaidRequest,
    service: DividendService = Depends(),
):
    """Pay out every pending member dividend of a distribution"""
    try:
        return service.mark_distribution_paid(distribution_id, request.payment_method.value)
    except DistributionNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DistributionStatusException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.post("/distributions/{distribution_id}/cancel", response_model=DistributionDetailResponse)
def cancel_distribution(
    distribution_id: int,
    request: CancelDistributionRequest,
    service: DividendService = Depends(),
):
    try:
        return service.cancel_distribution(distribution_id, reason=request.reason)
    except DistributionNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DistributionStatusException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/members/{member_id}", response_model=List[MemberDividendResponse])
def get_member_dividend_history(
    member_id: int,
    limit: int = Query(12, ge=1, le=120),
    service: DividendService = Depends(),
):
    """Dividends of one member, latest period first"""
    return service.get_member_dividend_history(member_id, limit=limit)


# === Scheduler ===

@router.get("/schedule-settings", response_model=ScheduleSettingsResponse)
def get_schedule_settings(
    tenant_id: int = Query(..., gt=0),
    service: DividendService = Depends(),
):
    settings_row = service.get_schedule_settings(tenant_id)
    if settings_row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No dividend schedule settings for tenant {tenant_id}",
        )
    return settings_row


@router.put("/schedule-settings", response_model=ScheduleSettingsResponse)
def update_schedule_settings(
    update: ScheduleSettingsUpdate,
    tenant_id: int = Query(..., gt=0),
    service: DividendService = Depends(),
):
    """Create or change a tenant's dividend automation"""
    try:
        return service.update_schedule_settings(tenant_id, update)
    except InvalidAllocationPercentagesException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/scheduler/run", response_model=SchedulerRunResult)
def run_scheduler(dividend_scheduler: DividendScheduler = Depends(get_dividend_scheduler)):
    """Run the dividend scheduler now instead of waiting for its beat entry"""
    return dividend_scheduler.run_once()
