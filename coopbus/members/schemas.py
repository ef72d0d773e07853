# coopbus/members/schemas.py

"""
Pydantic schemas for the Membership module.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict, model_validator


class MembershipType(str, Enum):
    """Membership classes"""
    FOUNDING = "founding"
    STANDARD = "standard"
    ASSOCIATE = "associate"


class MemberEnroll(BaseModel):
    """Schema for enrolling a member"""
    customer_id: Optional[int] = Field(None, gt=0)
    driver_id: Optional[int] = Field(None, gt=0)
    membership_number: Optional[str] = Field(None, max_length=32)
    membership_type: MembershipType = MembershipType.STANDARD
    membership_start_date: Optional[date] = None
    voting_rights: bool = True
    share_capital_invested: Decimal = Field(Decimal("0.00"), ge=0)
    dividend_eligible: bool = True

    @model_validator(mode="after")
    def check_single_identity(self):
        if (self.customer_id is None) == (self.driver_id is None):
            raise ValueError("Exactly one of customer_id or driver_id is required")
        return self


class MemberDeactivate(BaseModel):
    """Schema for ending a membership"""
    end_date: Optional[date] = None


class MemberResponse(BaseModel):
    """Schema for member response"""
    id: int
    tenant_id: int
    customer_id: Optional[int] = None
    driver_id: Optional[int] = None
    member_type: str
    membership_number: str
    membership_type: str
    membership_start_date: date
    membership_end_date: Optional[date] = None
    is_active: bool
    voting_rights: bool
    share_capital_invested: Decimal
    dividend_eligible: bool

    model_config = ConfigDict(from_attributes=True)
