# coopbus/dividends/models.py

"""
Dividend distribution models - SQLAlchemy 2.x

- Dividend_Distributions: One payout plan per tenant and period.
- Member_Dividends: One member's share of a distribution.
- Dividend_Schedule_Settings: Per-tenant automation settings.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from enum import Enum as PyEnum

from sqlalchemy import (
    String, Numeric, Integer, Boolean, DateTime, Date, Index, ForeignKey,
    UniqueConstraint, Enum as SQLEnum, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coopbus.core.db import Base
from coopbus.core.mixins import AuditMixin


# === Enums ===

class DistributionStatus(str, PyEnum):
    """Lifecycle of a distribution"""
    PENDING = "pending"
    CALCULATED = "calculated"
    DISTRIBUTED = "distributed"
    CANCELLED = "cancelled"


class PaymentStatus(str, PyEnum):
    """Payment state of one member dividend"""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentMethod(str, PyEnum):
    """How a dividend reaches the member"""
    ACCOUNT_CREDIT = "account_credit"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    REINVEST = "reinvest"


class ScheduleFrequency(str, PyEnum):
    """Length of an automated dividend period"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


# === Dividend_Distributions Model ===

class DividendDistribution(Base, AuditMixin):
    """
    Payout plan of one tenant for one period.

    Only one distribution may exist per (tenant, period_start, period_end).
    Once distributed only payment bookkeeping changes.
    """
    __tablename__ = "dividend_distributions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    cooperative_model: Mapped[str] = mapped_column(String(16), default="passenger", nullable=False)

    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total_costs: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    gross_surplus: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    reserves_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    business_costs_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    dividend_pool: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    eligible_members: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_member_patronage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(
        SQLEnum("pending", "calculated", "distributed", "cancelled", name="distribution_status_enum"),
        default="pending", nullable=False
    )
    calculated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    distributed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    member_dividends: Mapped[List["MemberDividend"]] = relationship(
        "MemberDividend", back_populates="distribution", lazy="selectin",
        order_by="MemberDividend.id",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "period_start", "period_end", name="uq_distribution_tenant_period"),
        Index("idx_distribution_tenant_end", "tenant_id", "period_end"),
    )

    def __repr__(self) -> str:
        return (
            f"<DividendDistribution(id={self.id}, tenant_id={self.tenant_id}, "
            f"period={self.period_start}..{self.period_end}, status='{self.status}')>"
        )


# === Member_Dividends Model ===

class MemberDividend(Base, AuditMixin):
    """One member's share of a distribution"""
    __tablename__ = "member_dividends"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    distribution_id: Mapped[int] = mapped_column(
        ForeignKey("dividend_distributions.id"), nullable=False, index=True
    )
    member_id: Mapped[int] = mapped_column(ForeignKey("cooperative_members.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    member_type: Mapped[str] = mapped_column(
        SQLEnum("customer", "driver", name="dividend_member_type_enum"), nullable=False
    )
    patronage_value: Mapped[int] = mapped_column(Integer, nullable=False, comment="Trips taken or driven")
    patronage_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    dividend_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(
        SQLEnum("account_credit", "bank_transfer", "cash", "reinvest", name="dividend_payment_method_enum"),
        nullable=True
    )
    payment_status: Mapped[str] = mapped_column(
        SQLEnum("pending", "paid", "cancelled", name="dividend_payment_status_enum"),
        default="pending", nullable=False
    )
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    distribution: Mapped["DividendDistribution"] = relationship(
        "DividendDistribution", back_populates="member_dividends"
    )

    __table_args__ = (
        UniqueConstraint("distribution_id", "member_id", name="uq_member_dividend"),
    )


# === Dividend_Schedule_Settings Model ===

class DividendScheduleSettings(Base, AuditMixin):
    """Per-tenant settings of the dividend scheduler"""
    __tablename__ = "dividend_schedule_settings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), unique=True, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    frequency: Mapped[str] = mapped_column(
        SQLEnum("monthly", "quarterly", name="dividend_frequency_enum"),
        default="monthly", nullable=False
    )
    reserves_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("20.00"), nullable=False)
    business_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("30.00"), nullable=False)
    dividend_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("50.00"), nullable=False)
    auto_distribute: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notification_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
