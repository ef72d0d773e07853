# coopbus/members/services.py

"""
Business logic for the cooperative membership directory.
"""

from datetime import date
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from coopbus.core.db import get_db
from coopbus.members.exceptions import (
    MemberAlreadyEnrolledException, MemberNotFoundException, MemberStatusException,
)
from coopbus.members.models import CooperativeMember
from coopbus.members.repository import MemberRepository
from coopbus.members.schemas import MemberEnroll
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)


def get_member_repository(db: Session = Depends(get_db)) -> MemberRepository:
    """Dependency to get MemberRepository instance."""
    return MemberRepository(db)


class MemberService:
    """Enrolment, lookup and deactivation of cooperative members"""

    def __init__(self, repo: MemberRepository = Depends(get_member_repository)):
        self.repo = repo

    def enroll_member(self, tenant_id: int, data: MemberEnroll) -> CooperativeMember:
        """
        Enrol a customer or driver as a member.

        A membership number is generated when none is given. A person may
        hold only one active membership per tenant.
        """
        if data.customer_id is not None:
            existing = self.repo.get_active_customer_member(tenant_id, data.customer_id)
        else:
            existing = self.repo.get_active_driver_member(tenant_id, data.driver_id)
        if existing is not None:
            raise MemberAlreadyEnrolledException(tenant_id, data.customer_id, data.driver_id)

        try:
            membership_number = data.membership_number or self._next_membership_number(tenant_id)
            member = self.repo.create_member(CooperativeMember(
                tenant_id=tenant_id,
                customer_id=data.customer_id,
                driver_id=data.driver_id,
                membership_number=membership_number,
                membership_type=data.membership_type.value,
                membership_start_date=data.membership_start_date or date.today(),
                is_active=True,
                voting_rights=data.voting_rights,
                share_capital_invested=data.share_capital_invested,
                dividend_eligible=data.dividend_eligible,
            ))
            self.repo.commit()
            return member
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to enrol member", tenant_id=tenant_id, error=str(e))
            raise

    def deactivate_member(self, member_id: int, end_date: Optional[date] = None) -> CooperativeMember:
        """End a membership; the row is kept for dividend history"""
        member = self.get_member(member_id)
        if not member.is_active:
            raise MemberStatusException(f"Member {member_id} is already inactive")

        try:
            member.is_active = False
            member.membership_end_date = end_date or date.today()
            self.repo.commit()
            logger.info("Cooperative member deactivated", member_id=member_id)
            return member
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to deactivate member", member_id=member_id, error=str(e))
            raise

    def get_member(self, member_id: int) -> CooperativeMember:
        member = self.repo.get_member(member_id)
        if member is None:
            raise MemberNotFoundException(member_id)
        return member

    def get_active_customer_member(self, tenant_id: int, customer_id: int) -> Optional[CooperativeMember]:
        """Active membership of a passenger, if any"""
        return self.repo.get_active_customer_member(tenant_id, customer_id)

    def is_active_member(self, tenant_id: int, customer_id: Optional[int]) -> bool:
        if customer_id is None:
            return False
        return self.repo.get_active_customer_member(tenant_id, customer_id) is not None

    def list_members(
        self, tenant_id: int, active_only: bool = True, member_type: Optional[str] = None
    ) -> List[CooperativeMember]:
        return self.repo.list_members(tenant_id, active_only=active_only, member_type=member_type)

    def _next_membership_number(self, tenant_id: int) -> str:
        return f"CM{tenant_id:03d}-{self.repo.count_members(tenant_id) + 1:05d}"
