# coopbus/allocation/router.py

"""
FastAPI router for surplus allocation.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from coopbus.allocation.exceptions import InvalidAllocationPercentagesException
from coopbus.allocation.schemas import AllocateSurplusRequest, SurplusAllocationResult
from coopbus.allocation.services import SurplusAllocator
from coopbus.surplus.exceptions import InvalidSurplusAmountException, RouteNotFoundException
from coopbus.surplus.schemas import ServiceContext
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/cooperative/allocation", tags=["Surplus Allocation"])


@router.post(
    "/routes/{route_id}",
    response_model=SurplusAllocationResult,
    status_code=status.HTTP_201_CREATED,
)
def allocate_surplus(
    route_id: int,
    request: AllocateSurplusRequest,
    allocator: SurplusAllocator = Depends(),
):
    """
    Allocate the surplus of a profitable service.

    The three percentages must sum to 100. Reserves, business and dividend
    shares are truncated to cents and the remainder stays in the route pool
    for future subsidies.
    """
    logger.info(
        "Allocating surplus",
        route_id=route_id,
        timetable_id=request.timetable_id,
        gross_surplus=str(request.gross_surplus),
    )

    context = ServiceContext(
        timetable_id=request.timetable_id,
        service_date=request.service_date,
        cost_id=request.cost_id,
    )
    try:
        return allocator.allocate_surplus(
            route_id,
            request.tenant_id,
            context,
            request.gross_surplus,
            reserves_percent=request.reserves_percent,
            business_percent=request.business_percent,
            dividend_percent=request.dividend_percent,
        )
    except RouteNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except (InvalidAllocationPercentagesException, InvalidSurplusAmountException) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
