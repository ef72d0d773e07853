# coopbus/allocation/exceptions.py

"""
Custom exceptions for the Surplus Allocator.
"""

from decimal import Decimal


class AllocationBaseException(Exception):
    """Base exception for Surplus Allocator."""
    pass


class InvalidAllocationPercentagesException(AllocationBaseException):
    """Exception raised when a percentage split does not add up to 100."""

    def __init__(self, reserves_percent: Decimal, business_percent: Decimal, dividend_percent: Decimal):
        self.reserves_percent = reserves_percent
        self.business_percent = business_percent
        self.dividend_percent = dividend_percent
        self.total = reserves_percent + business_percent + dividend_percent
        super().__init__(
            f"Allocation percentages must be non-negative and sum to 100, got "
            f"{reserves_percent} + {business_percent} + {dividend_percent} = {self.total}"
        )
