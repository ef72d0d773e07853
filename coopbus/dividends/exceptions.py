# coopbus/dividends/exceptions.py

"""
Custom exceptions for the Dividends module.
"""

from datetime import date


class DividendBaseException(Exception):
    """Base exception for Dividends module."""
    pass


class DistributionNotFoundException(DividendBaseException):
    """Exception raised when a distribution is not found."""

    def __init__(self, distribution_id: int):
        self.distribution_id = distribution_id
        super().__init__(f"Dividend distribution with ID {distribution_id} not found")


class DuplicateDistributionPeriodException(DividendBaseException):
    """Exception raised when a period already has a distribution."""

    def __init__(self, tenant_id: int, period_start: date, period_end: date, distribution_id=None):
        self.tenant_id = tenant_id
        self.period_start = period_start
        self.period_end = period_end
        self.distribution_id = distribution_id
        super().__init__(
            f"Tenant {tenant_id} already has a dividend distribution for {period_start} to {period_end}"
        )


class DistributionStatusException(DividendBaseException):
    """Exception raised for invalid distribution status transitions."""

    def __init__(self, distribution_id: int, status: str, action: str):
        self.distribution_id = distribution_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} distribution {distribution_id} with status '{status}'")


class InvalidDividendPeriodException(DividendBaseException):
    """Exception raised when period_end falls before period_start."""

    def __init__(self, period_start: date, period_end: date):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(f"Period end {period_end} is before period start {period_start}")


class InvalidCronExpressionException(DividendBaseException):
    """Exception raised when a scheduler cron expression cannot be parsed."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron schedule '{expression}': {reason}")
