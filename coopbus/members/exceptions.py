# coopbus/members/exceptions.py

"""
Custom exceptions for the Membership module.
"""


class MemberBaseException(Exception):
    """Base exception for Membership module."""
    pass


class MemberNotFoundException(MemberBaseException):
    """Exception raised when a member is not found."""

    def __init__(self, member_id: int):
        self.member_id = member_id
        super().__init__(f"Cooperative member with ID {member_id} not found")


class MemberAlreadyEnrolledException(MemberBaseException):
    """Exception raised when a customer or driver already has an active membership."""

    def __init__(self, tenant_id: int, customer_id=None, driver_id=None):
        self.tenant_id = tenant_id
        self.customer_id = customer_id
        self.driver_id = driver_id
        who = f"customer {customer_id}" if customer_id is not None else f"driver {driver_id}"
        super().__init__(f"{who} is already an active member of tenant {tenant_id}")


class MemberStatusException(MemberBaseException):
    """Exception raised for invalid membership status transitions."""
    pass
