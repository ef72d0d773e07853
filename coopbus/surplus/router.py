# coopbus/surplus/router.py

"""
FastAPI router for route surplus pools.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coopbus.surplus.exceptions import PoolNotFoundException, RouteNotFoundException
from coopbus.surplus.schemas import (
    InitializePoolRequest, PoolStatistics, PoolVerificationResult,
    SurplusPoolResponse, SurplusTransactionResponse,
)
from coopbus.surplus.services import SurplusLedgerService
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/cooperative/surplus",
    tags=["Surplus Pools"],
    responses={404: {"description": "Not found"}},
)


@router.get("/routes/{route_id}/pool", response_model=SurplusPoolResponse)
def get_pool(route_id: int, ledger: SurplusLedgerService = Depends()):
    """Balances and lifetime counters of a route pool"""
    pool = ledger.get_pool(route_id)
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Surplus pool for route {route_id} not found",
        )
    return pool


@router.post("/routes/{route_id}/pool", response_model=SurplusPoolResponse, status_code=status.HTTP_201_CREATED)
def initialize_pool(
    route_id: int,
    request: InitializePoolRequest,
    ledger: SurplusLedgerService = Depends(),
):
    """
    Create the surplus pool of a route.

    Calling this for a route that already has a pool leaves its balances
    untouched.
    """
    logger.info("Initialising surplus pool", route_id=route_id, tenant_id=request.tenant_id)
    try:
        return ledger.initialize_pool(route_id, request.tenant_id)
    except RouteNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/routes/{route_id}/transactions", response_model=List[SurplusTransactionResponse])
def list_transactions(
    route_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    ledger: SurplusLedgerService = Depends(),
):
    """Ledger entries of a route, newest first"""
    return ledger.get_transactions(route_id, limit=limit, offset=offset)


@router.get("/routes/{route_id}/statistics", response_model=PoolStatistics)
def get_statistics(route_id: int, ledger: SurplusLedgerService = Depends()):
    stats = ledger.get_statistics(route_id)
    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Surplus pool for route {route_id} not found",
        )
    return stats


@router.get("/routes/{route_id}/verify", response_model=PoolVerificationResult)
def verify_pool(route_id: int, ledger: SurplusLedgerService = Depends()):
    """Replay the ledger of a route and compare it with the stored balances"""
    try:
        return ledger.verify_pool(route_id)
    except PoolNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
