# coopbus/dividends/schemas.py

"""
Pydantic schemas for the Dividends module.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict, EmailStr


# === Enums ===

class PaymentMethod(str, Enum):
    """How a dividend reaches the member"""
    ACCOUNT_CREDIT = "account_credit"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    REINVEST = "reinvest"


class ScheduleFrequency(str, Enum):
    """Length of an automated dividend period"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


# === Calculation Schemas ===

class MemberDividendPlan(BaseModel):
    """One member's share in a calculated plan"""
    member_id: int
    member_name: Optional[str] = None
    membership_number: str
    member_type: str
    patronage_value: int
    patronage_percentage: Decimal
    dividend_amount: Decimal


class DistributionPlan(BaseModel):
    """Period figures of a calculated plan"""
    tenant_id: int
    period_start: date
    period_end: date
    cooperative_model: str
    total_revenue: Decimal
    total_costs: Decimal
    gross_surplus: Decimal
    reserves_amount: Decimal
    business_costs_amount: Decimal
    dividend_pool: Decimal
    eligible_members: int
    total_member_patronage: int
    status: str = "calculated"


class DividendSummary(BaseModel):
    total_eligible_members: int
    total_patronage: int
    total_dividend_pool: Decimal
    total_allocated: Decimal
    average_dividend_per_member: Decimal
    average_dividend_per_trip: Decimal


class DividendCalculationResult(BaseModel):
    """Unsaved payout plan for a period"""
    distribution: DistributionPlan
    member_dividends: List[MemberDividendPlan] = Field(default_factory=list)
    summary: DividendSummary
    distribution_id: Optional[int] = Field(None, description="Set once the plan has been saved")


class CalculateDividendsRequest(BaseModel):
    """Request to calculate (and optionally save) a period's dividends"""
    period_start: date
    period_end: date
    reserves_percent: Decimal = Field(Decimal("20"), ge=0, le=100)
    business_percent: Decimal = Field(Decimal("30"), ge=0, le=100)
    dividend_percent: Decimal = Field(Decimal("50"), ge=0, le=100)
    save: bool = False


class MarkPaidRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.ACCOUNT_CREDIT


class CancelDistributionRequest(BaseModel):
    reason: Optional[str] = None


# === Stored Distribution Schemas ===

class MemberDividendResponse(BaseModel):
    id: int
    distribution_id: int
    member_id: int
    member_type: str
    patronage_value: int
    patronage_percentage: Decimal
    dividend_amount: Decimal
    payment_method: Optional[str] = None
    payment_status: str
    payment_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class DistributionResponse(BaseModel):
    id: int
    tenant_id: int
    period_start: date
    period_end: date
    cooperative_model: str
    total_revenue: Decimal
    total_costs: Decimal
    gross_surplus: Decimal
    reserves_amount: Decimal
    business_costs_amount: Decimal
    dividend_pool: Decimal
    eligible_members: int
    total_member_patronage: int
    status: str
    calculated_at: Optional[datetime] = None
    distributed_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DistributionDetailResponse(DistributionResponse):
    member_dividends: List[MemberDividendResponse] = Field(default_factory=list)


# === Schedule Settings Schemas ===

class ScheduleSettingsUpdate(BaseModel):
    """Partial update of a tenant's scheduler settings"""
    enabled: Optional[bool] = None
    frequency: Optional[ScheduleFrequency] = None
    reserves_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    business_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    dividend_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    auto_distribute: Optional[bool] = None
    notification_email: Optional[EmailStr] = None


class ScheduleSettingsResponse(BaseModel):
    tenant_id: int
    enabled: bool
    frequency: str
    reserves_percent: Decimal
    business_percent: Decimal
    dividend_percent: Decimal
    auto_distribute: bool
    notification_email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SchedulerRunResult(BaseModel):
    """Outcome of one scheduler pass"""
    run_date: date
    skipped: bool = Field(False, description="True when another run held the lock")
    tenants_processed: int = 0
    distributions_created: List[int] = Field(default_factory=list)
    distributions_paid: List[int] = Field(default_factory=list)
    tenants_skipped: List[int] = Field(default_factory=list)
    tenants_failed: List[int] = Field(default_factory=list)
