# coopbus/subsidy/router.py

"""
FastAPI router for surplus subsidies.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from coopbus.subsidy.schemas import ApplySubsidyRequest, SubsidyCalculation, SubsidyQuoteRequest
from coopbus.subsidy.services import SubsidyService
from coopbus.surplus.exceptions import (
    InsufficientSurplusException, InvalidSurplusAmountException, PoolNotFoundException,
    RouteNotFoundException,
)
from coopbus.surplus.schemas import ServiceContext, SurplusTransactionResponse
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/cooperative/subsidy", tags=["Subsidy"])


@router.post("/routes/{route_id}/quote", response_model=SubsidyCalculation)
def quote_subsidy(
    route_id: int,
    request: SubsidyQuoteRequest,
    service: SubsidyService = Depends(),
):
    """Quote the subsidy a service could draw without touching the pool"""
    return service.calculate_available_subsidy(
        route_id,
        request.service_cost,
        max_surplus_percent=request.max_surplus_percent,
        max_service_percent=request.max_service_percent,
        max_acceptable_fare=request.max_acceptable_fare,
    )


@router.post(
    "/routes/{route_id}/apply",
    response_model=SurplusTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def apply_subsidy(
    route_id: int,
    request: ApplySubsidyRequest,
    service: SubsidyService = Depends(),
):
    """Draw a subsidy from the route pool for one service"""
    logger.info(
        "Applying subsidy",
        route_id=route_id,
        timetable_id=request.timetable_id,
        amount=str(request.subsidy_amount),
    )

    context = ServiceContext(
        timetable_id=request.timetable_id,
        service_date=request.service_date,
        cost_id=request.cost_id,
        description=f"Subsidy for timetable {request.timetable_id} on {request.service_date}",
    )
    try:
        return service.apply_subsidy(
            route_id,
            request.tenant_id,
            context,
            request.subsidy_amount,
            request.passenger_count,
            request.service_cost,
        )
    except (PoolNotFoundException, RouteNotFoundException) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except InsufficientSurplusException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except InvalidSurplusAmountException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
