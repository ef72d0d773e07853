# coopbus/members/repository.py

"""
Data Access Layer for the Membership module.
"""

from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from coopbus.members.models import CooperativeMember
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)


class MemberRepository:
    """Database operations for cooperative members"""

    def __init__(self, db: Session):
        self.db = db

    def create_member(self, member: CooperativeMember) -> CooperativeMember:
        self.db.add(member)
        self.db.flush()
        logger.info(
            "Cooperative member created",
            member_id=member.id, tenant_id=member.tenant_id,
            membership_number=member.membership_number,
        )
        return member

    def get_member(self, member_id: int) -> Optional[CooperativeMember]:
        return self.db.get(CooperativeMember, member_id)

    def get_active_customer_member(self, tenant_id: int, customer_id: int) -> Optional[CooperativeMember]:
        stmt = select(CooperativeMember).where(
            CooperativeMember.tenant_id == tenant_id,
            CooperativeMember.customer_id == customer_id,
            CooperativeMember.is_active.is_(True),
        )
        return self.db.execute(stmt).scalars().first()

    def get_active_driver_member(self, tenant_id: int, driver_id: int) -> Optional[CooperativeMember]:
        stmt = select(CooperativeMember).where(
            CooperativeMember.tenant_id == tenant_id,
            CooperativeMember.driver_id == driver_id,
            CooperativeMember.is_active.is_(True),
        )
        return self.db.execute(stmt).scalars().first()

    def list_members(
        self,
        tenant_id: int,
        active_only: bool = True,
        member_type: Optional[str] = None,
    ) -> List[CooperativeMember]:
        """Members of a tenant, optionally filtered to customers or drivers"""
        stmt = select(CooperativeMember).where(CooperativeMember.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(CooperativeMember.is_active.is_(True))
        if member_type == "customer":
            stmt = stmt.where(CooperativeMember.customer_id.is_not(None))
        elif member_type == "driver":
            stmt = stmt.where(CooperativeMember.driver_id.is_not(None))
        stmt = stmt.order_by(CooperativeMember.id)
        return list(self.db.execute(stmt).scalars().all())

    def count_members(self, tenant_id: int) -> int:
        stmt = select(func.count(CooperativeMember.id)).where(CooperativeMember.tenant_id == tenant_id)
        return self.db.execute(stmt).scalar() or 0

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
