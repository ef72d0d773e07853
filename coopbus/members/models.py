# coopbus/members/models.py

from datetime import date
from decimal import Decimal
from typing import Optional
from enum import Enum as PyEnum

from sqlalchemy import (
    String, Numeric, Boolean, Date, ForeignKey, Index, CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from coopbus.core.db import Base
from coopbus.core.mixins import AuditMixin


class MembershipType(str, PyEnum):
    """Membership classes"""
    FOUNDING = "founding"
    STANDARD = "standard"
    ASSOCIATE = "associate"


class CooperativeMember(Base, AuditMixin):
    """
    Member of a tenant's cooperative.

    A member is either a passenger (customer_id) or a driver (driver_id),
    never both. Members are end-dated on leaving and never deleted, since
    dividend history refers to them.
    """
    __tablename__ = "cooperative_members"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"), nullable=True, index=True)
    driver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("drivers.id"), nullable=True, index=True)

    membership_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    membership_type: Mapped[str] = mapped_column(
        SQLEnum("founding", "standard", "associate", name="membership_type_enum"),
        default="standard", nullable=False
    )
    membership_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    membership_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    voting_rights: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    share_capital_invested: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    dividend_eligible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(customer_id IS NULL) <> (driver_id IS NULL)",
            name="ck_member_customer_xor_driver",
        ),
        Index("idx_member_tenant_active", "tenant_id", "is_active"),
    )

    @property
    def member_type(self) -> str:
        return "customer" if self.customer_id is not None else "driver"

    def __repr__(self) -> str:
        return f"<CooperativeMember(id={self.id}, number='{self.membership_number}', type='{self.member_type}')>"
