# coopbus/surplus/exceptions.py

"""
Custom exceptions for the Surplus Ledger module.
"""

from decimal import Decimal


class SurplusLedgerBaseException(Exception):
    """Base exception for Surplus Ledger module."""
    pass


class PoolNotFoundException(SurplusLedgerBaseException):
    """Exception raised when a mutation needs a pool that was never initialised."""

    def __init__(self, route_id: int):
        self.route_id = route_id
        super().__init__(f"No surplus pool exists for route {route_id}")


class InsufficientSurplusException(SurplusLedgerBaseException):
    """Exception raised when a subsidy draw exceeds the available balance."""

    def __init__(self, route_id: int, requested: Decimal, available: Decimal):
        self.route_id = route_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient surplus on route {route_id}: requested {requested}, available {available}"
        )


class InvalidSurplusAmountException(SurplusLedgerBaseException):
    """Exception raised when a ledger amount is zero or negative."""

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Surplus amount must be positive, got {amount}")


class ServiceNotFoundException(SurplusLedgerBaseException):
    """Exception raised when a timetable or service cost record is not found."""

    def __init__(self, timetable_id: int, service_date=None):
        self.timetable_id = timetable_id
        self.service_date = service_date
        if service_date is None:
            super().__init__(f"Service with timetable ID {timetable_id} not found")
        else:
            super().__init__(f"No service cost recorded for timetable {timetable_id} on {service_date}")


class RouteNotFoundException(SurplusLedgerBaseException):
    """Exception raised when a route does not exist or belongs to another tenant."""

    def __init__(self, route_id: int, tenant_id: int):
        self.route_id = route_id
        self.tenant_id = tenant_id
        super().__init__(f"Route {route_id} not found for tenant {tenant_id}")
