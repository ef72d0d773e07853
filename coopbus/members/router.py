# coopbus/members/router.py

"""
FastAPI router for the membership directory.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coopbus.members.exceptions import (
    MemberAlreadyEnrolledException, MemberNotFoundException, MemberStatusException,
)
from coopbus.members.schemas import MemberDeactivate, MemberEnroll, MemberResponse
from coopbus.members.services import MemberService
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/cooperative/members",
    tags=["Members"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def enroll_member(
    data: MemberEnroll,
    tenant_id: int = Query(..., gt=0),
    service: MemberService = Depends(),
):
    """Enrol a passenger or a driver as a cooperative member"""
    logger.info(
        "Enrolling member", tenant_id=tenant_id, customer_id=data.customer_id, driver_id=data.driver_id
    )
    try:
        return service.enroll_member(tenant_id, data)
    except MemberAlreadyEnrolledException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/", response_model=List[MemberResponse])
def list_members(
    tenant_id: int = Query(..., gt=0),
    active_only: bool = Query(True),
    member_type: Optional[str] = Query(None, pattern="^(customer|driver)$"),
    service: MemberService = Depends(),
):
    return service.list_members(tenant_id, active_only=active_only, member_type=member_type)


@router.get("/{member_id}", response_model=MemberResponse)
def get_member(member_id: int, service: MemberService = Depends()):
    try:
        return service.get_member(member_id)
    except MemberNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/{member_id}/deactivate", response_model=MemberResponse)
def deactivate_member(
    member_id: int,
    data: MemberDeactivate,
    service: MemberService = Depends(),
):
    """End a membership. Past dividends stay attached to the member."""
    try:
        return service.deactivate_member(member_id, end_date=data.end_date)
    except MemberNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except MemberStatusException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
