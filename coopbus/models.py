# coopbus/models.py

"""
Imports every model module so all tables are registered on the declarative base.
"""

from coopbus.operations.models import Tenant, Customer, Driver, BusRoute, Timetable, Booking  # noqa: F401
from coopbus.members.models import CooperativeMember  # noqa: F401
from coopbus.surplus.models import RouteSurplusPool, SurplusTransaction, ServiceCostRecord  # noqa: F401
from coopbus.dividends.models import (  # noqa: F401
    DividendDistribution, MemberDividend, DividendScheduleSettings,
)
