# coopbus/costing/exceptions.py

"""
Custom exceptions for the Service Costing module.
"""


class CostingBaseException(Exception):
    """Base exception for Service Costing module."""
    pass


class ExternalProviderUnavailable(CostingBaseException):
    """Exception raised when the distance/duration provider cannot answer.

    Never escapes the estimator; it switches the estimate to fallback values.
    """

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} unavailable: {reason}")


class RouteNotFoundException(CostingBaseException):
    """Exception raised when a route is not found."""

    def __init__(self, route_id: int):
        self.route_id = route_id
        super().__init__(f"Bus route with ID {route_id} not found")
